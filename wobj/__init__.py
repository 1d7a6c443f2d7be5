"""Scene graph to runtime model blob converter."""

from wobj.blob import ModelBlob, encode_blob, read_blob
from wobj.convert import ConvertOptions, convert_file, convert_scene

__all__ = ["ConvertOptions", "ModelBlob", "convert_file", "convert_scene", "encode_blob", "read_blob"]
