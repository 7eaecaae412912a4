"""
Compute-pass submission helpers for the GPU backend.

`dispatch_shader` compiles (once per device and shader source) and runs a
compute shader over a list of buffers. Submission is asynchronous; callers
that need results on the host either read a buffer (which waits) or call
`wait_idle`.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from ....domain._errors import DeviceFailureError
from ._loader import import_wgpu

logger = logging.getLogger(__name__)

_pipeline_cache: dict[tuple[int, str], Any] = {}

_BINDING_TYPES = {
    "read": "read-only-storage",
    "read_write": "storage",
    "uniform": "uniform",
}


def _get_pipeline(gpu: Any, wgsl_code: str, access: Sequence[str]) -> Any:
    key = (id(gpu), wgsl_code)
    pipeline = _pipeline_cache.get(key)
    if pipeline is not None:
        return pipeline

    wgpu = import_wgpu()
    logger.debug("Compiling compute pipeline (%d bindings)", len(access))

    shader_module = gpu.create_shader_module(code=wgsl_code)
    entries = [
        {
            "binding": i,
            "visibility": wgpu.ShaderStage.COMPUTE,
            "buffer": {"type": _BINDING_TYPES[mode], "has_dynamic_offset": False},
        }
        for i, mode in enumerate(access)
    ]
    bind_group_layout = gpu.create_bind_group_layout(entries=entries)
    pipeline_layout = gpu.create_pipeline_layout(bind_group_layouts=[bind_group_layout])
    pipeline = gpu.create_compute_pipeline(
        layout=pipeline_layout,
        compute={"module": shader_module, "entry_point": "main"},
    )
    _pipeline_cache[key] = pipeline
    return pipeline


def dispatch_shader(
    gpu: Any,
    wgsl_code: str,
    buffers: Sequence[tuple[Any, str]],
    workgroups: Sequence[int],
) -> None:
    """
    Execute a compute shader on the GPU.

    Parameters
    ----------
    gpu : wgpu.GPUDevice
        Logical device.
    wgsl_code : str
        WGSL source with a `main` entry point.
    buffers : Sequence[tuple[wgpu.GPUBuffer, str]]
        Buffers bound at group 0 in order, each with its access mode:
        "read", "read_write" or "uniform".
    workgroups : Sequence[int]
        Dispatch size (x, y=1, z=1).

    Raises
    ------
    DeviceFailureError
        If pipeline creation or submission fails.
    """
    try:
        pipeline = _get_pipeline(gpu, wgsl_code, [mode for _, mode in buffers])

        bind_group = gpu.create_bind_group(
            layout=pipeline.get_bind_group_layout(0),
            entries=[
                {
                    "binding": i,
                    "resource": {"buffer": buf, "offset": 0, "size": buf.size},
                }
                for i, (buf, _) in enumerate(buffers)
            ],
        )

        command_encoder = gpu.create_command_encoder()
        compute_pass = command_encoder.begin_compute_pass()
        compute_pass.set_pipeline(pipeline)
        compute_pass.set_bind_group(0, bind_group)
        compute_pass.dispatch_workgroups(*workgroups)
        compute_pass.end()
        gpu.queue.submit([command_encoder.finish()])
    except DeviceFailureError:
        raise
    except Exception as exc:
        raise DeviceFailureError("gpu", f"shader dispatch failed: {exc}") from exc


def wait_idle(gpu: Any) -> None:
    """
    Block until all work submitted to `gpu` has completed.

    Raises
    ------
    DeviceFailureError
        If the queue reports a failure.
    """
    try:
        gpu.queue.on_submitted_work_done_sync()
    except Exception as exc:
        raise DeviceFailureError("gpu", f"synchronization failed: {exc}") from exc
