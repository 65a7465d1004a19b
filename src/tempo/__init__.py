from tempo.consts import VERSION

__version__ = VERSION
