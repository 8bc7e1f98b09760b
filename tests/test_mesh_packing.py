import pytest

from conftest import translation, triangle_mesh
from export_model_bin import collect_bind_poses, matrix_to_raw, pack_mesh
from scene_import import SceneBone, SceneMesh


def test_triangle_is_copied_in_order():
    scene_mesh = triangle_mesh(material_index=3)
    scene_mesh.texcoords.append([(9.0, 9.0, 9.0)] * 3)

    mesh, dropped = pack_mesh(scene_mesh)

    assert dropped == 0
    assert mesh['positions'] == [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
    assert mesh['normals'] == [(0.0, 0.0, 1.0)] * 3
    assert mesh['uvs'] == [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)]
    assert mesh['indices'] == [0, 1, 2]
    assert mesh['material_index'] == 3
    assert mesh['min_extents'] == (0.0, 0.0, 0.0)
    assert mesh['max_extents'] == (1.0, 1.0, 0.0)
    assert mesh['dimensions'] == (1.0, 1.0, 0.0)
    assert mesh['scale'] == (1.0, 1.0, 1.0)
    assert mesh['rotation'] == (0.0, 0.0, 0.0, 1.0)
    assert mesh['translation'] == (0.0, 0.0, 0.0)
    assert mesh['bone_indices'] == []
    assert mesh['bone_weights'] == []
    assert mesh['bone_names'] == []


def test_extents_come_from_importer_bounds():
    scene_mesh = SceneMesh(vertices=[(0.0, 0.0, 0.0)], aabb_min=(-1.0, -2.0, -3.0), aabb_max=(1.0, 2.0, 3.0))
    mesh, _ = pack_mesh(scene_mesh)
    assert mesh['dimensions'] == (2.0, 4.0, 6.0)


@pytest.mark.parametrize("texcoords", [[], [None], [None, [(1.0, 1.0, 0.0)] * 3]])
def test_missing_uv_channel_zero_gives_empty_uvs(texcoords, capsys):
    scene_mesh = triangle_mesh(uvs=False)
    scene_mesh.texcoords = texcoords

    mesh, _ = pack_mesh(scene_mesh)

    assert mesh['uvs'] == []
    assert "no UV channel 0" in capsys.readouterr().out


def test_faces_are_flattened():
    scene_mesh = triangle_mesh()
    scene_mesh.faces = [(0, 1, 2), (2, 1, 0)]
    mesh, _ = pack_mesh(scene_mesh)
    assert mesh['indices'] == [0, 1, 2, 2, 1, 0]


def test_non_triangle_faces_are_appended_verbatim():
    scene_mesh = triangle_mesh()
    scene_mesh.faces = [(0, 1, 2, 0), (2, 1)]
    mesh, _ = pack_mesh(scene_mesh)
    assert mesh['indices'] == [0, 1, 2, 0, 2, 1]


def test_four_influences_are_kept():
    bones = [SceneBone(f"b{i}", weights=[(1, w)]) for i, w in enumerate((0.1, 0.2, 0.3, 0.4))]
    mesh, dropped = pack_mesh(triangle_mesh(bones=bones))

    assert dropped == 0
    assert mesh['bone_names'] == ["b0", "b1", "b2", "b3"]
    assert mesh['bone_indices'][1] == [0, 1, 2, 3]
    assert mesh['bone_weights'][1] == [0.1, 0.2, 0.3, 0.4]
    assert mesh['bone_weights'][0] == [0.0, 0.0, 0.0, 0.0]
    assert len(mesh['bone_indices']) == len(mesh['positions'])


def test_fifth_influence_is_dropped_without_renormalizing():
    bones = [SceneBone(f"b{i}", weights=[(2, 0.2)]) for i in range(5)]
    mesh, dropped = pack_mesh(triangle_mesh(bones=bones))

    assert dropped == 1
    assert mesh['bone_indices'][2] == [0, 1, 2, 3]
    assert mesh['bone_weights'][2] == [0.2, 0.2, 0.2, 0.2]
    # the dropped bone is still part of the mesh-local list
    assert mesh['bone_names'][4] == "b4"


def test_zero_weight_influence_leaves_slot_free():
    bones = [
        SceneBone("zero", weights=[(0, 0.0)]),
        SceneBone("real", weights=[(0, 0.75)]),
    ]
    mesh, dropped = pack_mesh(triangle_mesh(bones=bones))

    assert dropped == 0
    assert mesh['bone_indices'][0][0] == 1
    assert mesh['bone_weights'][0] == [0.75, 0.0, 0.0, 0.0]


def test_influence_on_missing_vertex_is_rejected():
    bones = [SceneBone("b", weights=[(7, 1.0)])]
    with pytest.raises(ValueError, match="vertex 7"):
        pack_mesh(triangle_mesh(bones=bones))


def test_collect_bind_poses_is_union_of_all_meshes():
    a = triangle_mesh(bones=[SceneBone("Hip", translation(1.0, 0.0, 0.0))])
    b = triangle_mesh(bones=[SceneBone("Hip", translation(1.0, 0.0, 0.0)),
                             SceneBone("Knee", translation(0.0, 2.0, 0.0))])
    plain = triangle_mesh()

    bind_poses = collect_bind_poses([a, b, plain])

    assert sorted(bind_poses) == ["Hip", "Knee"]
    assert bind_poses["Knee"] == matrix_to_raw(translation(0.0, 2.0, 0.0))
    assert bind_poses["Knee"][3] == [0.0, 2.0, 0.0, 1.0]
