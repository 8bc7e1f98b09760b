import math

import pytest

from scene_import import Scene, SceneBone, SceneMesh, SceneNode


def translation(tx, ty, tz):
    """Importer-convention (row-major) translation matrix."""
    return [1.0, 0.0, 0.0, tx,
            0.0, 1.0, 0.0, ty,
            0.0, 0.0, 1.0, tz,
            0.0, 0.0, 0.0, 1.0]


def rotation_z(degrees, scale=1.0):
    c = math.cos(math.radians(degrees)) * scale
    s = math.sin(math.radians(degrees)) * scale
    return [c, -s, 0.0, 0.0,
            s, c, 0.0, 0.0,
            0.0, 0.0, scale, 0.0,
            0.0, 0.0, 0.0, 1.0]


def triangle_mesh(name="tri", bones=None, material_index=0, uvs=True):
    vertices = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
    texcoords = [[(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]] if uvs else []
    return SceneMesh(
        name=name,
        vertices=vertices,
        normals=[(0.0, 0.0, 1.0)] * 3,
        texcoords=texcoords,
        faces=[(0, 1, 2)],
        bones=bones,
        material_index=material_index,
    )


@pytest.fixture
def spine_scene():
    """root -> Spine, two skinned triangles at the root sharing the Spine bone."""
    offset = translation(0.0, -1.0, 0.0)
    mesh_a = triangle_mesh("a", bones=[SceneBone("Spine", offset, [(0, 1.0), (1, 1.0), (2, 1.0)])])
    mesh_b = triangle_mesh("b", bones=[SceneBone("Spine", offset, [(0, 0.5), (2, 1.0)])])
    nodes = [
        SceneNode("root", children=[1], meshes=[0, 1]),
        SceneNode("Spine", translation(0.0, 1.0, 0.0)),
    ]
    return Scene(nodes=nodes, meshes=[mesh_a, mesh_b])
