#!/usr/bin/env python3
"""
Scene -> runtime model blob converter.

Imports a model through assimp, bakes every triangle mesh into one world-space
vertex buffer, assigns bone ids, reduces animation keyframes and writes the
binary blob described in wobj.blob.

Usage: wobj-convert <input> <output> [-noscale] [-writemeshes]
       python -m wobj.convert <input> <output> [-noscale] [-writemeshes]

    -noscale      replace every scale track with a constant identity track
    -writemeshes  keep mesh boundaries and append a subset table
"""

import logging
import os
import sys
from dataclasses import dataclass

from wobj.assimp_import import load_scene
from wobj.blob import ModelBlob, encode_blob
from wobj.errors import ConversionError, OutputWriteError, UsageError
from wobj.geometry import flatten_scene
from wobj.hierarchy import flatten_hierarchy
from wobj.keyframes import reduce_animation

logger = logging.getLogger(__name__)

USAGE = "Usage: wobj-convert <input> <output> [-noscale] [-writemeshes]"

FLAGS = {
    "-noscale": "no_scale",
    "-writemeshes": "write_subsets",
}


@dataclass
class ConvertOptions:
    no_scale: bool = False
    write_subsets: bool = False


# ============================================================
# Pipeline
# ============================================================

def convert_scene(scene, options=None):
    """Run the whole pipeline on an imported scene and return the ModelBlob."""
    options = options or ConvertOptions()

    ctx = flatten_scene(scene, write_subsets=options.write_subsets)
    vertices = ctx.vertex_buffer()
    indices = ctx.index_buffer()
    logger.info("  Mesh: %d vertices, %d indices (%d triangles), %d bones",
                len(vertices), len(indices), len(indices) // 3, len(ctx.bones))
    if ctx.skipped_meshes:
        logger.info("  Skipped %d non-triangle meshes", ctx.skipped_meshes)
    if ctx.bounds.empty:
        logger.info("  Bounds: empty")
    else:
        logger.info("  Bounds: %s - %s", ctx.bounds.min.tolist(), ctx.bounds.max.tolist())

    blob = ModelBlob(vertices, indices, ctx.bounds)
    if scene.has_animations:
        blob.nodes, node_map = flatten_hierarchy(scene.root, ctx.bones)
        for anim in scene.animations:
            reduced = reduce_animation(anim, node_map, no_scale=options.no_scale)
            logger.info("  Animation: %s (%d channels)", reduced.name, len(reduced.channels))
            blob.animations.append(reduced)
        logger.info("  Nodes: %d", len(blob.nodes))
    if options.write_subsets:
        blob.subsets = ctx.subsets
    return blob


def convert_file(input_path, output_path, options=None):
    options = options or ConvertOptions()
    scene = load_scene(input_path, write_subsets=options.write_subsets)
    data = encode_blob(convert_scene(scene, options))
    try:
        with open(output_path, 'wb') as f:
            f.write(data)
    except OSError as e:
        raise OutputWriteError(f"Could not write {output_path}: {e}") from e
    logger.info("  Written: %s (%d bytes)", output_path, len(data))
    return len(data)


# ============================================================
# Main
# ============================================================

def parse_args(argv):
    options = ConvertOptions()
    paths = []
    for arg in argv:
        if arg in FLAGS:
            setattr(options, FLAGS[arg], True)
        elif arg.startswith("-"):
            raise UsageError(f"Unknown option: {arg}")
        else:
            paths.append(arg)
    if len(paths) != 2:
        raise UsageError(f"Expected 2 paths, got {len(paths)}")
    return paths[0], paths[1], options


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    argv = sys.argv[1:] if argv is None else argv

    try:
        input_path, output_path, options = parse_args(argv)
    except UsageError as e:
        print(USAGE)
        logger.error("ERROR: %s", e)
        return 1

    logger.info("Converting: %s", input_path)
    logger.info("Output: %s", os.path.abspath(output_path))
    try:
        convert_file(input_path, output_path, options)
    except ConversionError as e:
        logger.error("ERROR: %s", e)
        return 1
    logger.info("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
