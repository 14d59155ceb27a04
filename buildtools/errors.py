class EnhancedBuildsError(Exception):
    pass

class SetupLoadError(EnhancedBuildsError):
    pass

class NotReadyError(EnhancedBuildsError):
    pass

class EditorNotFoundError(EnhancedBuildsError):
    pass

class EditorBusyError(EnhancedBuildsError):
    pass
