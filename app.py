#!/usr/bin/env python3
"""
Block Model Web Interface

A simple Gradio-based web UI for exploring block model compression of
procedural terrain.

Run with: python app.py
Then open http://localhost:7860 in your browser
"""

import sys
from pathlib import Path
import tempfile

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from functools import partial

import gradio as gr
from block_model import BlockModel, VoxelSphere
from block_model.cli import setup_logging
from block_model.config import ordered_layer_filter


def regenerate(
    parents_xz: int,
    parents_y: int,
    sub_blocks: int,
    num_types: int,
    seed: int,
    solid_level: int,
    sphere_radius: float,
    sphere_offset_z: float,
    sphere_type: int,
    layer_min: int,
    layer_max: int,
    export_glb: bool,
    export_obj: bool,
    moved: str = "min"
):
    """
    Run the full pipeline for the current slider values.

    Returns corrected layer sliders, preview path, stats text, and file
    paths for downloads.
    """
    # The bound that was not dragged follows the one that was
    layer_min, layer_max = ordered_layer_filter(layer_min, layer_max, moved)

    parent_count = (int(parents_xz), int(parents_y), int(parents_xz))
    sub = (int(sub_blocks),) * 3
    grid_shape = tuple(p * s for p, s in zip(parent_count, sub))

    spheres = []
    if sphere_radius > 0:
        center = (
            grid_shape[0] / 2,
            grid_shape[1] / 2,
            grid_shape[2] / 2 + sphere_offset_z
        )
        spheres.append(VoxelSphere(center, sphere_radius, int(sphere_type)))

    try:
        model = BlockModel(
            parent_count=parent_count,
            sub_blocks_per_parent=sub,
            num_voxel_types=int(num_types),
            layer_filter=(int(layer_min), int(layer_max))
        )
        model.generate_terrain(
            solid_level=int(solid_level),
            seed=int(seed),
            spheres=spheres
        ).regenerate()
    except ValueError as e:
        return layer_min, layer_max, None, f"**Error:** {e}", None, None

    stats = model.get_stats()

    stats_text = f"""## Block Model Ready

| Metric | Value |
|--------|-------|
| Grid Size | {stats['grid_size']} |
| Solid Voxels | {stats['solid_voxels']:,} of {stats['voxel_count']:,} |
| Parent Blocks | {stats['parent_blocks']:,} |
| Empty / Uniform / Mixed | {stats['empty_blocks']} / {stats['uniform_blocks']} / {stats['mixed_blocks']} |
| Cuboids | {stats['cuboids']:,} |
| Compression | {stats['compression_ratio']:.2f} voxels per primitive |
| Vertices | {stats['vertices']:,} |
| Triangles | {stats['triangles']:,} |

**Layers:** {layer_min} to {layer_max}
"""

    if model.vertex_count == 0:
        return layer_min, layer_max, None, stats_text + "\n*Mesh is empty.*", None, None

    export_dir = tempfile.mkdtemp(prefix="blockmodel_")

    # Always create GLB for preview
    preview_path = str(Path(export_dir) / "preview.glb")
    model.export_glb(preview_path)

    glb_path = None
    obj_path = None

    if export_glb:
        glb_path = str(Path(export_dir) / "model.glb")
        model.export_glb(glb_path)

    if export_obj:
        obj_path = str(Path(export_dir) / "model.obj")
        model.export_obj(obj_path)

    return layer_min, layer_max, preview_path, stats_text, glb_path, obj_path


# Build the Gradio interface
with gr.Blocks(title="Block Model Compression") as app:

    gr.Markdown("""
    # Block Model Compression
    ### Compress voxel terrain into parent blocks and cuboids

    Move a slider to regenerate the model.
    """)

    with gr.Row():
        # Left column - Settings
        with gr.Column(scale=1):
            gr.Markdown("### Grid")

            parents_xz = gr.Slider(1, 16, value=8, step=1, label="Parent Blocks (X, Z)")
            parents_y = gr.Slider(1, 8, value=4, step=1, label="Parent Blocks (Y)")
            sub_blocks = gr.Slider(1, 8, value=4, step=1, label="Sub-blocks per Parent")
            num_types = gr.Slider(1, 6, value=4, step=1, label="Voxel Types")

            gr.Markdown("### Terrain")

            seed = gr.Number(value=0, precision=0, label="Seed")
            solid_level = gr.Slider(0, 32, value=4, step=1, label="Solid Level")

            sphere_radius = gr.Slider(0, 16, value=6, step=0.5, label="Sphere Radius")
            sphere_offset_z = gr.Slider(-16, 16, value=0, step=0.5, label="Sphere Z Offset")
            sphere_type = gr.Slider(0, 5, value=1, step=1, label="Sphere Type")

            gr.Markdown("### Layer Filter")

            layer_min = gr.Slider(0, 20, value=0, step=1, label="Min Layer")
            layer_max = gr.Slider(0, 20, value=20, step=1, label="Max Layer")

            gr.Markdown("### Export Formats")
            with gr.Row():
                export_glb = gr.Checkbox(value=True, label="GLB")
                export_obj = gr.Checkbox(value=False, label="OBJ")

            generate_btn = gr.Button("Regenerate", variant="primary")

        # Middle column - 3D Preview
        with gr.Column(scale=2):
            gr.Markdown("### 3D Preview")
            gr.Markdown("*Click and drag to rotate, scroll to zoom*")

            model_preview = gr.Model3D(
                label="Block Model Preview",
                clear_color=[0.1, 0.1, 0.1, 1.0]
            )

            stats_output = gr.Markdown(
                value="Click 'Regenerate' to build the model."
            )

        # Right column - Downloads
        with gr.Column(scale=1):
            gr.Markdown("### Downloads")

            glb_output = gr.File(label="GLB (glTF binary)")
            obj_output = gr.File(label="OBJ + MTL (Universal)")

            gr.Markdown("""
            ---
            **Tips:**
            - **Uniform** blocks are drawn as one box
            - **Mixed** blocks are split into cuboids
            - Faces between solid blocks are culled
            - The layer filter hides coarse layers along Y
            """)

    inputs = [
        parents_xz, parents_y, sub_blocks, num_types,
        seed, solid_level,
        sphere_radius, sphere_offset_z, sphere_type,
        layer_min, layer_max,
        export_glb, export_obj
    ]
    outputs = [layer_min, layer_max, model_preview, stats_output, glb_output, obj_output]

    # Wire up events
    generate_btn.click(fn=regenerate, inputs=inputs, outputs=outputs)

    for slider in (sphere_radius, sphere_offset_z, layer_min):
        slider.release(fn=regenerate, inputs=inputs, outputs=outputs)
    layer_max.release(fn=partial(regenerate, moved="max"), inputs=inputs, outputs=outputs)


if __name__ == "__main__":
    setup_logging()

    print("\n" + "="*60)
    print("Block Model Web Interface")
    print("="*60)
    print("\nStarting server...")
    print("Open http://localhost:7860 in your browser\n")

    app.launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=False
    )
