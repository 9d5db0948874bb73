from logging import getLogger, NullHandler

__version__ = '0.1.0'

getLogger(__name__).addHandler(NullHandler())
