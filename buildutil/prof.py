import atexit
import functools
import time

class ProfBlock:
    children = None
    start = None
    end = None
    label = None

    def __init__(self, label: str = None):
        self.children = []
        self.label = label

    def elapsed(self) -> float:
        if self.end is None:
            return time.perf_counter() - self.start
        return self.end - self.start

    def print(self, indent: int = 0, suppress: bool = False) -> None:
        if not suppress:
            print(" " * indent + f"{self.label}: {self.elapsed():0.2f}")

        for child in self.children:
            child.print(indent + 2)

root = ProfBlock("root")
root.start = time.perf_counter()
current_context = root

def prof(func):
    @functools.wraps(func)
    def wrapper_timer(*args, **kwargs):
        with Context(func.__name__):
            return func(*args, **kwargs)

    return wrapper_timer

class Context:
    def __init__(self, label: str, quiet: bool = False):
        self.prof = ProfBlock(label)
        self.parent = None
        self.quiet = quiet

    def __enter__(self):
        global current_context

        # add our new context to the parent
        current_context.children += [self.prof]
        self.parent = current_context
        current_context = self.prof

        self.prof.start = time.perf_counter()
        return self.prof

    def __exit__(self, exception_type, exception_value, exception_traceback):
        global current_context

        self.prof.end = time.perf_counter()
        current_context = self.parent

        if not self.quiet:
            print(f"Finished {self.prof.label}, {self.prof.elapsed():0.2f} seconds")

@atexit.register
def printall() -> None:
    # panel edits never open a context; only dump when something was actually timed
    if not root.children:
        return

    print()
    print("========= Prof dump")
    root.print(suppress = True)
