from .trajectory_io import load_path, save_path

__all__ = ["load_path", "save_path"]
