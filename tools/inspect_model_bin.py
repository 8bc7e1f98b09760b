#!/usr/bin/env python3
"""Read back a model.bin and report what is inside (trimesh for geometry checks).

Usage: python inspect_model_bin.py <model.bin>
"""
import os
import struct
import sys

import trimesh


# ============================================================
# model.bin Reader
# ============================================================

def _unpack(fmt, data, offset):
    size = struct.calcsize(fmt)
    if offset + size > len(data):
        raise ValueError(f"Truncated model.bin: need {size} bytes at offset {offset}, "
                         f"have {len(data) - offset}")
    return struct.unpack_from(fmt, data, offset), offset + size


def _read_count(data, offset):
    (n,), offset = _unpack('<I', data, offset)
    return n, offset


def _read_string(data, offset):
    length, offset = _read_count(data, offset)
    if offset + length > len(data):
        raise ValueError(f"Truncated model.bin: string of {length} bytes at offset {offset}")
    return data[offset:offset + length].decode('utf-8'), offset + length


def _read_vectors(data, offset, width, code='f'):
    n, offset = _read_count(data, offset)
    values, offset = _unpack(f'<{n * width}{code}', data, offset)
    return [tuple(values[i:i + width]) for i in range(0, n * width, width)], offset


def _read_mesh(data, offset):
    mesh = {}
    mesh['positions'], offset = _read_vectors(data, offset, 3)
    mesh['normals'], offset = _read_vectors(data, offset, 3)
    mesh['uvs'], offset = _read_vectors(data, offset, 2)

    n, offset = _read_count(data, offset)
    indices, offset = _unpack(f'<{n}I', data, offset)
    mesh['indices'] = list(indices)
    (mesh['material_index'],), offset = _unpack('<I', data, offset)

    mesh['min_extents'], offset = _unpack('<3f', data, offset)
    mesh['max_extents'], offset = _unpack('<3f', data, offset)
    mesh['dimensions'], offset = _unpack('<3f', data, offset)
    mesh['scale'], offset = _unpack('<3f', data, offset)
    mesh['rotation'], offset = _unpack('<4f', data, offset)
    mesh['translation'], offset = _unpack('<3f', data, offset)

    bone_indices, offset = _read_vectors(data, offset, 4, 'I')
    bone_weights, offset = _read_vectors(data, offset, 4)
    mesh['bone_indices'] = [list(bi) for bi in bone_indices]
    mesh['bone_weights'] = [list(bw) for bw in bone_weights]
    return mesh, offset


def read_model_bin(data):
    """Decode model.bin bytes into the same dict shape the exporter writes.

    Mesh-local bone names are not part of the file and are not restored.
    """
    offset = 0
    model = {'meshes': [], 'materials': [], 'bone_names': [], 'inverse_bind_matrices': []}

    n, offset = _read_count(data, offset)
    for _ in range(n):
        mesh, offset = _read_mesh(data, offset)
        model['meshes'].append(mesh)

    n, offset = _read_count(data, offset)
    for _ in range(n):
        mat = {}
        for key in ('name', 'diffuse_texture_path', 'normals_texture_path', 'specular_texture_path'):
            mat[key], offset = _read_string(data, offset)
        model['materials'].append(mat)

    n, offset = _read_count(data, offset)
    for _ in range(n):
        name, offset = _read_string(data, offset)
        model['bone_names'].append(name)

    n, offset = _read_count(data, offset)
    for _ in range(n):
        values, offset = _unpack('<16f', data, offset)
        model['inverse_bind_matrices'].append([list(values[c * 4:c * 4 + 4]) for c in range(4)])

    if offset != len(data):
        raise ValueError(f"Trailing data in model.bin: {len(data) - offset} bytes after offset {offset}")
    return model


def mesh_to_trimesh(mesh):
    """Positions + triangle indices as a trimesh.Trimesh (no merging or repair)."""
    indices = mesh['indices']
    faces = [indices[i:i + 3] for i in range(0, len(indices) - len(indices) % 3, 3)]
    return trimesh.Trimesh(vertices=mesh['positions'], faces=faces, process=False)


# ============================================================
# Report
# ============================================================

def inspect_file(path):
    print(f"\n{'='*60}")
    print(f"FILE: {os.path.basename(path)} ({os.path.getsize(path)} bytes)")
    print(f"{'='*60}")

    with open(path, 'rb') as f:
        model = read_model_bin(f.read())

    print(f"\n--- MESHES ({len(model['meshes'])}) ---")
    for i, mesh in enumerate(model['meshes']):
        print(f"  Mesh[{i}]: verts={len(mesh['positions'])} tris={len(mesh['indices'])//3} "
              f"uvs={len(mesh['uvs'])} material={mesh['material_index']}")
        print(f"    extents: min={mesh['min_extents']} max={mesh['max_extents']}")
        print(f"    placement: scale={mesh['scale']} rotation={mesh['rotation']} "
              f"translation={mesh['translation']}")
        if mesh['bone_indices']:
            used = sorted({bi[k] for bi, bw in zip(mesh['bone_indices'], mesh['bone_weights'])
                           for k in range(4) if bw[k] != 0.0})
            print(f"    skinned: bones used={used}")
        if mesh['positions'] and len(mesh['indices']) >= 3:
            tm = mesh_to_trimesh(mesh)
            print(f"    trimesh bounds: {tm.bounds.tolist()}")

    print(f"\n--- MATERIALS ({len(model['materials'])}) ---")
    for i, mat in enumerate(model['materials']):
        print(f"  Material[{i}]: '{mat['name']}' diffuse='{mat['diffuse_texture_path']}' "
              f"normals='{mat['normals_texture_path']}' specular='{mat['specular_texture_path']}'")

    print(f"\n--- BONES ({len(model['bone_names'])}) ---")
    for i, name in enumerate(model['bone_names']):
        print(f"  Bone[{i}]: {name}")

    return model


def main():
    if len(sys.argv) < 2:
        print("Usage: python inspect_model_bin.py <model.bin>")
        sys.exit(1)

    path = sys.argv[1]
    if not os.path.exists(path):
        print(f"NOT FOUND: {path}")
        sys.exit(1)
    inspect_file(path)


if __name__ == "__main__":
    main()
