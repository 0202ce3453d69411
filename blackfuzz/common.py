class FuzzError(Exception):
    pass


class SetupError(FuzzError):
    pass


class LaunchError(FuzzError):
    pass
