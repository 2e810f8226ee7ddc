"""mdlayer: compiles markdown content collections into JSON data modules."""

__version__ = "0.3.0"
