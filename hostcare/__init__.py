__project__ = "hostcare"
__version__ = "0.4.0"
