"""Lake water clarity (Secchi depth) modelling from Landsat surface reflectance."""

__version__ = "0.1.0"
