#!/usr/bin/env python3
"""
Scene graph import via assimp_py.

Loads any model format assimp understands and flattens it into a small,
read-only scene description the exporters work on:

  Scene.nodes      flat node arena, root at index 0, children by index
  Scene.meshes     vertices / normals / uv channels / faces / bones
  Scene.materials  generic property list + typed texture slots

Matrices stay in the importer's convention: 16 floats, row-major
(a1..a4, b1..b4, c1..c4, d1..d4).

Usage: python scene_import.py <model file>   (prints the node tree)
"""

import os
import sys

# assimp aiTextureType values
TEXTURE_NONE = 0
TEXTURE_DIFFUSE = 1
TEXTURE_SPECULAR = 2
TEXTURE_NORMALS = 6

IDENTITY_MATRIX = [1.0, 0.0, 0.0, 0.0,
                   0.0, 1.0, 0.0, 0.0,
                   0.0, 0.0, 1.0, 0.0,
                   0.0, 0.0, 0.0, 1.0]


# ============================================================
# Scene Graph
# ============================================================

class SceneNode:
    def __init__(self, name="", transformation=None, children=None, meshes=None):
        self.name = name
        self.transformation = list(transformation) if transformation else list(IDENTITY_MATRIX)
        self.children = children or []
        self.meshes = meshes or []

    def __repr__(self):
        return f"SceneNode({self.name}, children={len(self.children)}, meshes={len(self.meshes)})"


class SceneBone:
    def __init__(self, name, offset_matrix=None, weights=None):
        self.name = name
        self.offset_matrix = list(offset_matrix) if offset_matrix else list(IDENTITY_MATRIX)
        self.weights = weights or []  # [(vertex_id, weight), ...]

    def __repr__(self):
        return f"SceneBone({self.name}, weights={len(self.weights)})"


class SceneMesh:
    def __init__(self, name="", vertices=None, normals=None, texcoords=None, faces=None,
                 bones=None, material_index=0, aabb_min=None, aabb_max=None):
        self.name = name
        self.vertices = vertices or []
        self.normals = normals or []
        self.texcoords = texcoords or []  # per channel: None or [(u, v, w), ...]
        self.faces = faces or []
        self.bones = bones or []
        self.material_index = material_index
        if aabb_min is None or aabb_max is None:
            aabb_min, aabb_max = compute_bounds(self.vertices)
        self.aabb_min = tuple(aabb_min)
        self.aabb_max = tuple(aabb_max)

    def __repr__(self):
        return f"SceneMesh({self.name}, verts={len(self.vertices)}, faces={len(self.faces)}, bones={len(self.bones)})"


class MaterialProperty:
    def __init__(self, key, semantic, value):
        self.key = key
        self.semantic = semantic
        self.value = value

    def __repr__(self):
        return f"MaterialProperty({self.key}, semantic={self.semantic}, value={self.value!r})"


class SceneMaterial:
    def __init__(self, properties=None, textures=None):
        self.properties = properties or []
        self.textures = textures or {}  # texture type -> path

    def __repr__(self):
        return f"SceneMaterial(props={len(self.properties)}, textures={sorted(self.textures)})"


class Scene:
    def __init__(self, nodes=None, meshes=None, materials=None):
        self.nodes = nodes or [SceneNode("root")]
        self.meshes = meshes or []
        self.materials = materials or []

    @property
    def root(self):
        return self.nodes[0]


def compute_bounds(vertices):
    """Axis-aligned bounds of a vertex list. Empty lists give a zero box."""
    if not vertices:
        return (0.0, 0.0, 0.0), (0.0, 0.0, 0.0)
    xs = [v[0] for v in vertices]
    ys = [v[1] for v in vertices]
    zs = [v[2] for v in vertices]
    return (min(xs), min(ys), min(zs)), (max(xs), max(ys), max(zs))


# ============================================================
# assimp_py Conversion
# ============================================================

def _triples(flat):
    return [tuple(flat[i:i + 3]) for i in range(0, len(flat), 3)]


def _convert_texcoords(channels, num_vertices):
    result = []
    for channel in channels or []:
        if not channel or num_vertices == 0:
            result.append(None)
            continue
        stride = len(channel) // num_vertices
        coords = []
        for i in range(0, stride * num_vertices, stride):
            uvw = list(channel[i:i + stride]) + [0.0] * (3 - stride)
            coords.append(tuple(uvw[:3]))
        result.append(coords)
    return result


def _convert_mesh(mesh):
    vertices = _triples(mesh.vertices)
    normals = _triples(mesh.normals) if mesh.normals else []
    faces = _triples(mesh.indices)

    bones = []
    for bone in mesh.bones or []:
        weights = [(int(vid), float(w)) for vid, w in (bone.weights or [])]
        bones.append(SceneBone(bone.name, bone.offset_matrix, weights))

    return SceneMesh(
        name=mesh.name,
        vertices=vertices,
        normals=normals,
        texcoords=_convert_texcoords(mesh.texcoords, len(vertices)),
        faces=faces,
        bones=bones,
        material_index=mesh.material_index,
    )


def _convert_material(mat):
    """assimp_py exposes materials as dicts; rebuild the generic property list
    ($mat.name / $tex.file) and the typed texture slot map from it."""
    properties = []
    textures = {}
    for key, value in mat.items():
        if key == "NAME":
            properties.append(MaterialProperty("$mat.name", TEXTURE_NONE, value))
        elif key == "TEXTURES":
            for tex_type, paths in value.items():
                for path in paths:
                    properties.append(MaterialProperty("$tex.file", tex_type, path))
                if paths:
                    textures[tex_type] = paths[0]
        else:
            properties.append(MaterialProperty(key, TEXTURE_NONE, value))
    return SceneMaterial(properties, textures)


def _flatten_nodes(root_node):
    nodes = []
    stack = [(root_node, None)]
    while stack:
        ai_node, parent_index = stack.pop()
        index = len(nodes)
        nodes.append(SceneNode(ai_node.name, ai_node.transformation, [], list(ai_node.meshes)))
        if parent_index is not None:
            nodes[parent_index].children.append(index)
        # Reversed so children come off the stack in listed order
        for child in reversed(ai_node.children):
            stack.append((child, index))
    return nodes


def load_scene(path):
    """Import a model file (triangulated, normals generated) and return a Scene."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Input file not found: {path}")

    import assimp_py

    ai_scene = assimp_py.ImportFile(path,
        assimp_py.Process_Triangulate |
        assimp_py.Process_GenNormals)
    if ai_scene is None or ai_scene.root_node is None:
        raise ValueError(f"Could not import scene from {path}")

    return Scene(
        nodes=_flatten_nodes(ai_scene.root_node),
        meshes=[_convert_mesh(m) for m in ai_scene.meshes],
        materials=[_convert_material(m) for m in ai_scene.materials],
    )


def main():
    if len(sys.argv) < 2:
        print("Usage: python scene_import.py <model file>")
        sys.exit(1)

    scene = load_scene(sys.argv[1])

    def print_node(index, depth=0):
        node = scene.nodes[index]
        name = node.name if node.name else "(unnamed)"
        print(f"{'  '*depth}{name}  children={len(node.children)}  meshes={node.meshes}")
        for c in node.children:
            print_node(c, depth + 1)

    print_node(0)
    for i, mesh in enumerate(scene.meshes):
        print(f"  Mesh[{i}]: {mesh}")
    for i, mat in enumerate(scene.materials):
        print(f"  Material[{i}]: {mat}")


if __name__ == "__main__":
    main()
