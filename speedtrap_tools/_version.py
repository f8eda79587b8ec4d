# speedtrap_tools version
__version_info__ = (0, 3, 1)
__version__ = ".".join(map(str, __version_info__))
