#!/usr/bin/env python3
"""
Model → model.bin Exporter
Imports any model assimp can read and packs meshes, materials and the
skeleton into a single flat binary for the engine runtime loader.

Output: model.bin in the current directory (little-endian, length-prefixed,
no header). Layout is documented in write_model_bin().

Usage: python export_model_bin.py <FILENAME>
"""

import io
import math
import os
import struct
import sys

from scene_import import (
    TEXTURE_DIFFUSE,
    TEXTURE_NORMALS,
    TEXTURE_SPECULAR,
    load_scene,
)

OUTPUT_FILENAME = "model.bin"
MAX_INFLUENCES = 4


# ============================================================
# Matrix Math (column-major: m[col][row])
# ============================================================

def mat4_identity():
    return [[1.0, 0.0, 0.0, 0.0],
            [0.0, 1.0, 0.0, 0.0],
            [0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 1.0]]


def matrix_to_raw(m):
    """Importer matrix (16 floats, row-major a1..d4) → engine column-major 4x4.

    result[col][row] = m[row*4 + col], i.e. column 0 is (a1, b1, c1, d1).
    """
    if m is None or len(m) != 16:
        raise ValueError(f"Malformed transform: expected 16 floats, got {m!r}")
    result = [[0.0] * 4 for _ in range(4)]
    for row in range(4):
        for col in range(4):
            result[col][row] = float(m[row * 4 + col])
    return result


def mat4_multiply(a, b):
    """a * b for column-major matrices (b is applied first)."""
    r = [[0.0] * 4 for _ in range(4)]
    for col in range(4):
        for row in range(4):
            s = 0.0
            for k in range(4):
                s += a[k][row] * b[col][k]
            r[col][row] = s
    return r


def _matrix3_to_quaternion(m):
    """Row-major 3x3 rotation → (x, y, z, w)."""
    m00, m01, m02 = m[0]
    m10, m11, m12 = m[1]
    m20, m21, m22 = m[2]

    trace = m00 + m11 + m22
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        w = 0.25 * s
        x = (m21 - m12) / s
        y = (m02 - m20) / s
        z = (m10 - m01) / s
    elif m00 > m11 and m00 > m22:
        s = math.sqrt(1.0 + m00 - m11 - m22) * 2.0
        w = (m21 - m12) / s
        x = 0.25 * s
        y = (m01 + m10) / s
        z = (m02 + m20) / s
    elif m11 > m22:
        s = math.sqrt(1.0 + m11 - m00 - m22) * 2.0
        w = (m02 - m20) / s
        x = (m01 + m10) / s
        y = 0.25 * s
        z = (m12 + m21) / s
    else:
        s = math.sqrt(1.0 + m22 - m00 - m11) * 2.0
        w = (m10 - m01) / s
        x = (m02 + m20) / s
        y = (m12 + m21) / s
        z = 0.25 * s

    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if norm == 0.0:
        return (0.0, 0.0, 0.0, 1.0)
    return (x / norm, y / norm, z / norm, w / norm)


def decompose(m):
    """Split an affine column-major transform into (scale, rotation, translation).

    Rotation is a unit quaternion (x, y, z, w). A negative determinant is
    folded into scale.x. Shear is not detected; skewed input gives a
    best-effort result. A zero-length axis keeps scale 0 on that axis and
    the rotation falls back to identity.
    """
    cx, cy, cz = m[0][:3], m[1][:3], m[2][:3]
    det = (cx[0] * (cy[1] * cz[2] - cy[2] * cz[1])
           - cy[0] * (cx[1] * cz[2] - cx[2] * cz[1])
           + cz[0] * (cx[1] * cy[2] - cx[2] * cy[1]))

    sx = math.sqrt(cx[0]**2 + cx[1]**2 + cx[2]**2)
    sy = math.sqrt(cy[0]**2 + cy[1]**2 + cy[2]**2)
    sz = math.sqrt(cz[0]**2 + cz[1]**2 + cz[2]**2)
    if det < 0.0:
        sx = -sx
    scale = (sx, sy, sz)
    if sx == 0.0 or sy == 0.0 or sz == 0.0:
        rotation = (0.0, 0.0, 0.0, 1.0)
    else:
        rot = [[cx[0] / sx, cy[0] / sy, cz[0] / sz],
               [cx[1] / sx, cy[1] / sy, cz[1] / sz],
               [cx[2] / sx, cy[2] / sy, cz[2] / sz]]
        rotation = _matrix3_to_quaternion(rot)
    translation = (m[3][0], m[3][1], m[3][2])
    return scale, rotation, translation


def compose(scale, rotation, translation):
    """Inverse of decompose(): T * R * S as a column-major 4x4."""
    x, y, z, w = rotation
    xx, yy, zz = x*x, y*y, z*z
    xy, xz, yz = x*y, x*z, y*z
    wx, wy, wz = w*x, w*y, w*z
    rot = [[1.0 - 2.0*(yy + zz), 2.0*(xy - wz),       2.0*(xz + wy)],
           [2.0*(xy + wz),       1.0 - 2.0*(xx + zz), 2.0*(yz - wx)],
           [2.0*(xz - wy),       2.0*(yz + wx),       1.0 - 2.0*(xx + yy)]]
    result = mat4_identity()
    for col in range(3):
        for row in range(3):
            result[col][row] = rot[row][col] * scale[col]
    result[3][0], result[3][1], result[3][2] = translation
    return result


# ============================================================
# Mesh Packing
# ============================================================

def new_serialized_mesh():
    return {
        'positions': [],
        'normals': [],
        'uvs': [],
        'indices': [],
        'material_index': 0,
        'min_extents': (0.0, 0.0, 0.0),
        'max_extents': (0.0, 0.0, 0.0),
        'dimensions': (0.0, 0.0, 0.0),
        'scale': (1.0, 1.0, 1.0),
        'rotation': (0.0, 0.0, 0.0, 1.0),
        'translation': (0.0, 0.0, 0.0),
        'bone_indices': [],
        'bone_weights': [],
        'bone_names': [],  # mesh-local, not serialized
    }


def pack_mesh(scene_mesh):
    """Convert one imported mesh. Returns (mesh, dropped_influences).

    Skin influences go into 4 fixed slots per vertex, first free slot wins
    (a slot is free while its weight is 0.0). Influences past the 4th are
    dropped and counted; remaining weights are not renormalized.
    """
    mesh = new_serialized_mesh()

    mn = tuple(scene_mesh.aabb_min)
    mx = tuple(scene_mesh.aabb_max)
    mesh['min_extents'] = mn
    mesh['max_extents'] = mx
    mesh['dimensions'] = (mx[0] - mn[0], mx[1] - mn[1], mx[2] - mn[2])

    mesh['positions'] = [(v[0], v[1], v[2]) for v in scene_mesh.vertices]
    mesh['normals'] = [(n[0], n[1], n[2]) for n in scene_mesh.normals]

    channel = scene_mesh.texcoords[0] if scene_mesh.texcoords else None
    if channel is None:
        if mesh['positions']:
            print(f"  Mesh '{scene_mesh.name}': no UV channel 0, writing empty UVs")
    else:
        mesh['uvs'] = [(t[0], t[1]) for t in channel]

    dropped = 0
    if scene_mesh.bones:
        num_vertices = len(mesh['positions'])
        mesh['bone_indices'] = [[0, 0, 0, 0] for _ in range(num_vertices)]
        mesh['bone_weights'] = [[0.0, 0.0, 0.0, 0.0] for _ in range(num_vertices)]
        for bone in scene_mesh.bones:
            mesh['bone_names'].append(bone.name)
            bone_name_idx = len(mesh['bone_names']) - 1
            for vid, weight in bone.weights:
                if vid < 0 or vid >= num_vertices:
                    raise ValueError(
                        f"Bone '{bone.name}' in mesh '{scene_mesh.name}' references "
                        f"vertex {vid}, mesh has {num_vertices} vertices")
                slots = mesh['bone_weights'][vid]
                for i in range(MAX_INFLUENCES):
                    if slots[i] == 0.0:
                        slots[i] = weight
                        mesh['bone_indices'][vid][i] = bone_name_idx
                        break
                else:
                    dropped += 1

    for face in scene_mesh.faces:
        mesh['indices'].extend(face)

    mesh['material_index'] = scene_mesh.material_index
    return mesh, dropped


def collect_bind_poses(scene_meshes):
    """Bone name → offset matrix (engine layout) over every mesh's skin."""
    bind_poses = {}
    for m in scene_meshes:
        for bone in m.bones:
            bind_poses[bone.name] = matrix_to_raw(bone.offset_matrix)
    return bind_poses


# ============================================================
# Skeleton
# ============================================================

def build_skeleton(scene, bind_poses, meshes):
    """Depth-first pre-order walk of the node tree.

    Collects bone names in first-discovery order with their inverse bind
    matrices, and bakes the world transform into every non-skinned mesh
    attached along the way. Skinned meshes keep the identity placement.
    Returns (bone_names, inverse_bind_matrices).
    """
    bone_names = []
    inverse_bind_matrices = []
    seen = set()

    stack = [(0, mat4_identity())]
    while stack:
        node_index, parent_world = stack.pop()
        node = scene.nodes[node_index]
        world = mat4_multiply(parent_world, matrix_to_raw(node.transformation))

        name = node.name
        if name in bind_poses and name not in seen:
            seen.add(name)
            bone_names.append(name)
            inverse_bind_matrices.append(bind_poses[name])

        for mi in node.meshes:
            mesh = meshes[mi]
            if mesh['bone_names']:
                continue
            mesh['scale'], mesh['rotation'], mesh['translation'] = decompose(world)

        # Reversed so children are visited in listed order
        for child in reversed(node.children):
            stack.append((child, world))

    return bone_names, inverse_bind_matrices


def remap_bone_indices(meshes, bone_names):
    """Rewrite mesh-local bone slots to indices into the global bone list.

    Slots with zero weight carry no bone and are set to 0.
    """
    positions = {name: i for i, name in enumerate(bone_names)}
    for mesh_index, mesh in enumerate(meshes):
        local_names = mesh['bone_names']
        for bi, bw in zip(mesh['bone_indices'], mesh['bone_weights']):
            for k in range(MAX_INFLUENCES):
                if bw[k] == 0.0:
                    bi[k] = 0
                    continue
                bone_name = local_names[bi[k]]
                if bone_name not in positions:
                    raise ValueError(
                        f"Mesh {mesh_index}: bone '{bone_name}' has skin weights "
                        f"but no node of that name in the hierarchy")
                bi[k] = positions[bone_name]


# ============================================================
# Materials
# ============================================================

def extract_material(scene_material):
    """Name + diffuse/normals/specular paths ("" when absent).

    Two sources: the generic property list ($mat.name, $tex.file), then
    the typed texture slot map, which overwrites whatever the properties set.
    """
    material = {
        'name': "",
        'diffuse_texture_path': "",
        'normals_texture_path': "",
        'specular_texture_path': "",
    }

    for prop in scene_material.properties:
        if not isinstance(prop.value, str):
            continue
        if prop.key == "$mat.name":
            material['name'] = prop.value
        elif prop.key == "$tex.file" and prop.semantic == TEXTURE_DIFFUSE:
            material['diffuse_texture_path'] = prop.value
        elif prop.key == "$tex.file" and prop.semantic == TEXTURE_NORMALS:
            material['normals_texture_path'] = prop.value

    slots = (
        (TEXTURE_DIFFUSE, 'diffuse_texture_path'),
        (TEXTURE_NORMALS, 'normals_texture_path'),
        (TEXTURE_SPECULAR, 'specular_texture_path'),
    )
    for tex_type, field in slots:
        if tex_type in scene_material.textures:
            material[field] = scene_material.textures[tex_type]

    return material


# ============================================================
# Conversion
# ============================================================

def convert_scene(scene):
    """Build the serialized model dict from an imported scene."""
    print(f"  Found {len(scene.meshes)} meshes, {len(scene.materials)} materials, "
          f"{len(scene.nodes)} nodes")

    model = {
        'meshes': [],
        'materials': [],
        'bone_names': [],
        'inverse_bind_matrices': [],
    }

    has_bones = False
    for i, scene_mesh in enumerate(scene.meshes):
        mesh, dropped = pack_mesh(scene_mesh)
        if mesh['bone_names']:
            has_bones = True
        if dropped:
            print(f"  WARNING: Mesh[{i}] '{scene_mesh.name}': dropped {dropped} skin "
                  f"influence(s) beyond {MAX_INFLUENCES} per vertex (weights not renormalized)")
        model['meshes'].append(mesh)

    bind_poses = collect_bind_poses(scene.meshes)
    bone_names, inverse_bind_matrices = build_skeleton(scene, bind_poses, model['meshes'])
    model['bone_names'] = bone_names
    model['inverse_bind_matrices'] = inverse_bind_matrices

    if has_bones:
        remap_bone_indices(model['meshes'], bone_names)
        print(f"  Skeleton: {len(bone_names)} bones")
        for i, name in enumerate(bone_names):
            print(f"    Bone {i}: {name}")

    for mat in scene.materials:
        material = extract_material(mat)
        model['materials'].append(material)
        print(f"  Material '{material['name']}': diffuse='{material['diffuse_texture_path']}' "
              f"normals='{material['normals_texture_path']}' "
              f"specular='{material['specular_texture_path']}'")

    return model


# ============================================================
# Binary Output (model.bin)
# ============================================================

def _write_count(f, n):
    f.write(struct.pack('<I', n))


def _write_string(f, s):
    data = s.encode('utf-8')
    _write_count(f, len(data))
    f.write(data)


def _write_vectors(f, vectors, width):
    _write_count(f, len(vectors))
    flat = [float(c) for v in vectors for c in v[:width]]
    f.write(struct.pack(f'<{len(flat)}f', *flat))


def _write_mesh(f, mesh):
    _write_vectors(f, mesh['positions'], 3)
    _write_vectors(f, mesh['normals'], 3)
    _write_vectors(f, mesh['uvs'], 2)

    indices = mesh['indices']
    _write_count(f, len(indices))
    f.write(struct.pack(f'<{len(indices)}I', *indices))
    f.write(struct.pack('<I', mesh['material_index']))

    f.write(struct.pack('<fff', *mesh['min_extents']))
    f.write(struct.pack('<fff', *mesh['max_extents']))
    f.write(struct.pack('<fff', *mesh['dimensions']))
    f.write(struct.pack('<fff', *mesh['scale']))
    f.write(struct.pack('<ffff', *mesh['rotation']))
    f.write(struct.pack('<fff', *mesh['translation']))

    _write_count(f, len(mesh['bone_indices']))
    for bi in mesh['bone_indices']:
        f.write(struct.pack('<4I', *bi))
    _write_vectors(f, mesh['bone_weights'], 4)


def pack_model(model):
    """Serialize the model dict.

    Model    := u32 n, Mesh*n  u32 n, Material*n  u32 n, Str*n  u32 n, Mat4*n
    Mesh     := positions(u32 n, 3f*n)  normals(u32 n, 3f*n)  uvs(u32 n, 2f*n)
                indices(u32 n, u32*n)  u32 material_index
                3f min  3f max  3f dimensions  3f scale  4f rotation(xyzw)
                3f translation  bone_indices(u32 n, 4u32*n)
                bone_weights(u32 n, 4f*n)
    Material := Str name  Str diffuse  Str normals  Str specular
    Str      := u32 byte length, utf-8
    Mat4     := 16f column-major
    """
    f = io.BytesIO()

    _write_count(f, len(model['meshes']))
    for mesh in model['meshes']:
        _write_mesh(f, mesh)

    _write_count(f, len(model['materials']))
    for mat in model['materials']:
        _write_string(f, mat['name'])
        _write_string(f, mat['diffuse_texture_path'])
        _write_string(f, mat['normals_texture_path'])
        _write_string(f, mat['specular_texture_path'])

    _write_count(f, len(model['bone_names']))
    for name in model['bone_names']:
        _write_string(f, name)

    _write_count(f, len(model['inverse_bind_matrices']))
    for m in model['inverse_bind_matrices']:
        f.write(struct.pack('<16f', *[m[col][row] for col in range(4) for row in range(4)]))

    return f.getvalue()


def write_model_bin(model, output_path):
    data = pack_model(model)
    with open(output_path, 'wb') as f:
        f.write(data)

    file_size = os.path.getsize(output_path)
    print(f"  Written: {output_path} ({file_size} bytes)")


# ============================================================
# Main
# ============================================================

def main():
    if len(sys.argv) < 2:
        print("Usage: python export_model_bin.py <FILENAME>")
        sys.exit(1)

    input_path = sys.argv[1]
    print(f"Exporting model from: {input_path}")

    try:
        scene = load_scene(input_path)
    except ImportError as e:
        print(f"ERROR: {e} (install the importer: pip install assimp-py)")
        sys.exit(1)
    except (OSError, ValueError, RuntimeError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    try:
        model = convert_scene(scene)
    except ValueError as e:
        print(f"ERROR: Conversion failed: {e}")
        sys.exit(1)

    write_model_bin(model, OUTPUT_FILENAME)
    print("Done!")


if __name__ == "__main__":
    main()
