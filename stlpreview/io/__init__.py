"""OBJ reading and writing for stlpreview."""

from stlpreview.io.obj import (
    ObjMesh,
    format_obj,
    read_obj,
    save_obj,
    write_obj,
    write_obj_unwelded,
)

__all__ = [
    "ObjMesh",
    "format_obj",
    "read_obj",
    "save_obj",
    "write_obj",
    "write_obj_unwelded",
]
