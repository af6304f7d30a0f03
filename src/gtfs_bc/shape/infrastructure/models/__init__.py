from .shape_model import ShapePointModel

__all__ = ["ShapePointModel"]
