from .designer import DesignerScreen
