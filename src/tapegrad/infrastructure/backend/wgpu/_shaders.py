"""
WGSL compute shader sources for the GPU backend.

All shaders operate on flat, row-major float32 storage buffers. Elementwise
shaders assume their operands were already broadcast to the output shape and
use a 2-D dispatch grid so that more than 65535 workgroups of 256 threads
can be addressed:

    idx = gid.x + gid.y * num_workgroups.x * 256
"""

WORKGROUP_SIZE = 256
TILE = 16

_BINARY_TEMPLATE = """
@group(0) @binding(0)
var<storage, read> a: array<f32>;
@group(0) @binding(1)
var<storage, read> b: array<f32>;
@group(0) @binding(2)
var<storage, read_write> out: array<f32>;

@compute @workgroup_size(256)
fn main(
    @builtin(global_invocation_id) gid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let idx = gid.x + gid.y * nwg.x * 256u;
    if (idx < arrayLength(&out)) {
        out[idx] = $EXPR;
    }
}
"""

_UNARY_TEMPLATE = """
@group(0) @binding(0)
var<storage, read> x: array<f32>;
@group(0) @binding(1)
var<storage, read_write> out: array<f32>;

@compute @workgroup_size(256)
fn main(
    @builtin(global_invocation_id) gid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let idx = gid.x + gid.y * nwg.x * 256u;
    if (idx < arrayLength(&out)) {
        out[idx] = $EXPR;
    }
}
"""

WGSL_ADD = _BINARY_TEMPLATE.replace("$EXPR", "a[idx] + b[idx]")
WGSL_SUB = _BINARY_TEMPLATE.replace("$EXPR", "a[idx] - b[idx]")
WGSL_MUL = _BINARY_TEMPLATE.replace("$EXPR", "a[idx] * b[idx]")

WGSL_NEG = _UNARY_TEMPLATE.replace("$EXPR", "-x[idx]")
WGSL_EXP = _UNARY_TEMPLATE.replace("$EXPR", "exp(x[idx])")

# params = (m, n, k, unused); workgroup_id.z selects the batch entry.
WGSL_MATMUL = """
@group(0) @binding(0)
var<storage, read> a: array<f32>;
@group(0) @binding(1)
var<storage, read> b: array<f32>;
@group(0) @binding(2)
var<storage, read_write> out: array<f32>;
@group(0) @binding(3)
var<uniform> params: vec4<u32>;

var<workgroup> tile_a: array<f32, 256>;
var<workgroup> tile_b: array<f32, 256>;

@compute @workgroup_size(16, 16)
fn main(
    @builtin(local_invocation_id) lid: vec3<u32>,
    @builtin(workgroup_id) wid: vec3<u32>,
) {
    let m = params.x;
    let n = params.y;
    let k = params.z;
    let batch = wid.z;
    let a_base = batch * m * k;
    let b_base = batch * k * n;

    let row = wid.y * 16u + lid.y;
    let col = wid.x * 16u + lid.x;

    var acc = 0.0;
    var t = 0u;
    loop {
        if (t >= k) { break; }

        let a_col = t + lid.x;
        var av = 0.0;
        if (row < m && a_col < k) {
            av = a[a_base + row * k + a_col];
        }
        tile_a[lid.y * 16u + lid.x] = av;

        let b_row = t + lid.y;
        var bv = 0.0;
        if (b_row < k && col < n) {
            bv = b[b_base + b_row * n + col];
        }
        tile_b[lid.y * 16u + lid.x] = bv;

        workgroupBarrier();

        for (var i = 0u; i < 16u; i = i + 1u) {
            acc = acc + tile_a[lid.y * 16u + i] * tile_b[i * 16u + lid.x];
        }

        workgroupBarrier();
        t = t + 16u;
    }

    if (row < m && col < n) {
        out[batch * m * n + row * n + col] = acc;
    }
}
"""

# params = (rows, cols, unused, unused) of each matrix in the batch.
WGSL_TRANSPOSE = """
@group(0) @binding(0)
var<storage, read> x: array<f32>;
@group(0) @binding(1)
var<storage, read_write> out: array<f32>;
@group(0) @binding(2)
var<uniform> params: vec4<u32>;

@compute @workgroup_size(256)
fn main(
    @builtin(global_invocation_id) gid: vec3<u32>,
    @builtin(num_workgroups) nwg: vec3<u32>,
) {
    let idx = gid.x + gid.y * nwg.x * 256u;
    if (idx >= arrayLength(&out)) {
        return;
    }
    let rows = params.x;
    let cols = params.y;
    let plane = rows * cols;
    let b = idx / plane;
    let rem = idx % plane;
    let r = rem / cols;
    let c = rem % cols;
    out[b * plane + c * rows + r] = x[idx];
}
"""
