from ._control_path import create_path_builder

__all__ = ["create_path_builder"]
