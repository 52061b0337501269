from .options import TrainOptions

__all__ = ["TrainOptions"]
