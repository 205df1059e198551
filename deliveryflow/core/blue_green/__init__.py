from .controller import BlueGreenController

__all__ = ["BlueGreenController"]
