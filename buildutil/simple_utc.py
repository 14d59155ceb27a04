import datetime

# used for timezone conversion stuff; see https://stackoverflow.com/questions/19654578/python-utc-datetime-objects-iso-format-doesnt-include-z-zulu-or-zero-offset
class simple_utc(datetime.tzinfo):
    def tzname(self, dt):
        return "UTC"
    def utcoffset(self, dt):
        return datetime.timedelta(0)
    def dst(self, dt):
        return datetime.timedelta(0)

def utcnow() -> datetime.datetime:
    return datetime.datetime.now(simple_utc())
