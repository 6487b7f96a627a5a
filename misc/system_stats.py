from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass, field

import psutil

GIB = 1024 ** 3
NVIDIA_SMI_QUERY = "name,memory.total,temperature.gpu,utilization.gpu"


@dataclass(slots=True)
class GpuStats:
    name: str
    vram_mb: int | None = None
    temperature_c: float | None = None
    utilization_pct: float | None = None


@dataclass(slots=True)
class SystemSnapshot:
    cpu_pct: float
    load_avg_1m: float | None
    cpu_count: int
    cpu_freq_mhz: float | None
    mem_total: int
    mem_used: int
    mem_available: int
    gpus: list[GpuStats] = field(default_factory=list)

    @property
    def mem_pct(self) -> float:
        if not self.mem_total:
            return 0.0
        return self.mem_used / self.mem_total * 100.0


def _parse_optional_float(raw: str) -> float | None:
    raw = raw.strip()
    try:
        return float(raw)
    except ValueError:
        return None


def parse_nvidia_smi_csv(text: str) -> list[GpuStats]:
    gpus: list[GpuStats] = []
    for line in (text or "").splitlines():
        cols = [c.strip() for c in line.split(",")]
        if len(cols) < 4 or not cols[0]:
            continue
        vram = _parse_optional_float(cols[1])
        gpus.append(
            GpuStats(
                name=cols[0],
                vram_mb=int(vram) if vram is not None else None,
                temperature_c=_parse_optional_float(cols[2]),
                utilization_pct=_parse_optional_float(cols[3]),
            )
        )
    return gpus


async def query_gpus() -> list[GpuStats]:
    exe = shutil.which("nvidia-smi")
    if not exe:
        return []
    proc = await asyncio.create_subprocess_exec(
        exe,
        f"--query-gpu={NVIDIA_SMI_QUERY}",
        "--format=csv,noheader,nounits",
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        out, _ = await asyncio.wait_for(proc.communicate(), timeout=5)
    except asyncio.TimeoutError:
        proc.kill()
        print("[Perf] nvidia-smi timed out")
        return []
    if proc.returncode != 0:
        return []
    return parse_nvidia_smi_csv(out.decode("utf-8", errors="replace"))


def _sample_host() -> SystemSnapshot:
    cpu_pct = psutil.cpu_percent(interval=0.5)
    try:
        load_1m = psutil.getloadavg()[0]
    except (AttributeError, OSError):
        load_1m = None
    freq = psutil.cpu_freq()
    mem = psutil.virtual_memory()
    return SystemSnapshot(
        cpu_pct=float(cpu_pct),
        load_avg_1m=load_1m,
        cpu_count=int(psutil.cpu_count() or 0),
        cpu_freq_mhz=float(freq.current) if freq else None,
        mem_total=int(mem.total),
        mem_used=int(mem.used),
        mem_available=int(mem.available),
    )


async def collect_snapshot() -> SystemSnapshot:
    snapshot = await asyncio.to_thread(_sample_host)
    snapshot.gpus = await query_gpus()
    return snapshot


def _pct(value: float | None) -> str:
    return f"{value:.0f}%" if value is not None else "n/a"


def format_summary(s: SystemSnapshot) -> str:
    gpu = _pct(s.gpus[0].utilization_pct) if s.gpus else "n/a"
    return (
        f"**CPU usage:** {s.cpu_pct:.2f}%\n"
        f"**Memory usage:** {s.mem_pct:.2f}%\n"
        f"**GPU usage:** {gpu}"
    )


def format_detail(s: SystemSnapshot) -> str:
    load = f"{s.load_avg_1m:.2f}" if s.load_avg_1m is not None else "n/a"
    freq = f"{s.cpu_freq_mhz / 1000:.2f} GHz" if s.cpu_freq_mhz else "n/a"
    lines = [
        "**CPU details:**",
        f"- Current load: {s.cpu_pct:.2f}%",
        f"- Load average (1m): {load}",
        f"- Cores: {s.cpu_count}",
        f"- Clock: {freq}",
        "",
        "**Memory details:**",
        f"- Total: {s.mem_total / GIB:.2f} GB",
        f"- Used: {s.mem_used / GIB:.2f} GB",
        f"- Available: {s.mem_available / GIB:.2f} GB",
        f"- Usage: {s.mem_pct:.2f}%",
        "",
        "**GPU details:**",
    ]
    if not s.gpus:
        lines.append("No GPU information available.")
    for idx, gpu in enumerate(s.gpus, start=1):
        temp = f"{gpu.temperature_c:.0f}°C" if gpu.temperature_c is not None else "n/a"
        vram = f"{gpu.vram_mb} MB" if gpu.vram_mb is not None else "n/a"
        lines.extend(
            [
                f"-- GPU {idx} --",
                f"Name: {gpu.name}",
                f"Memory: {vram}",
                f"Temperature: {temp}",
                f"Load: {_pct(gpu.utilization_pct)}",
            ]
        )
    return "\n".join(lines)
