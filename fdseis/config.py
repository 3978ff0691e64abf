from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple
import yaml

from .constants import DEFAULT_HALO, STENCIL_REACH
from .sampler import SeismoMode

_SECTIONS = {"grid", "seismo", "model"}

@dataclass
class GridConfig:
    nxg: int
    nyg: int
    nzg: int
    dx: float
    dy: float
    dz: float
    nprocx: int = 1
    nprocy: int = 1
    nprocz: int = 1
    halo: int = DEFAULT_HALO

    @property
    def global_shape(self) -> Tuple[int, int, int]:
        return (self.nxg, self.nyg, self.nzg)

    @property
    def procs(self) -> Tuple[int, int, int]:
        return (self.nprocx, self.nprocy, self.nprocz)

    @property
    def spacing(self) -> Tuple[float, float, float]:
        return (self.dx, self.dy, self.dz)

@dataclass
class SeismoConfig:
    mode: SeismoMode
    nt: int
    ndt: int = 1
    receivers: List[Tuple[int, int, int]] = field(default_factory=list)

    @property
    def ns(self) -> int:
        return self.nt // self.ndt

@dataclass
class ModelConfig:
    vp: float = 3500.0
    vs: float = 0.0
    rho: float = 2000.0

@dataclass
class Config:
    grid: GridConfig
    seismo: SeismoConfig
    model: ModelConfig


def _section(d: Dict[str, Any], key: str, allowed: set[str], required: bool = True) -> Dict[str, Any]:
    sec = d.get(key, None)
    if sec is None:
        if required:
            raise ValueError(f"config is missing the {key!r} section")
        return {}
    if not isinstance(sec, dict):
        raise ValueError(f"{key} must be a mapping")
    extra = sorted(set(sec.keys()) - allowed)
    if extra:
        raise ValueError(f"{key} contains unsupported keys: {extra}")
    return sec


def _require(sec: Dict[str, Any], section: str, keys: Tuple[str, ...]) -> None:
    missing = [k for k in keys if k not in sec]
    if missing:
        raise ValueError(f"{section} is missing required keys: {missing}")


def _parse_grid(d: Dict[str, Any]) -> GridConfig:
    g = _section(d, "grid", {"nxg", "nyg", "nzg", "dx", "dy", "dz", "nprocx", "nprocy", "nprocz", "halo"})
    _require(g, "grid", ("nxg", "nyg", "nzg", "dx"))
    grid = GridConfig(
        nxg=int(g["nxg"]),
        nyg=int(g["nyg"]),
        nzg=int(g["nzg"]),
        dx=float(g["dx"]),
        dy=float(g.get("dy", g["dx"])),
        dz=float(g.get("dz", g["dx"])),
        nprocx=int(g.get("nprocx", 1)),
        nprocy=int(g.get("nprocy", 1)),
        nprocz=int(g.get("nprocz", 1)),
        halo=int(g.get("halo", DEFAULT_HALO)),
    )
    if min(grid.global_shape) <= 0:
        raise ValueError("grid.nxg/nyg/nzg must be positive")
    if min(grid.procs) <= 0:
        raise ValueError("grid.nprocx/nprocy/nprocz must be positive")
    if min(grid.spacing) <= 0.0:
        raise ValueError("grid.dx/dy/dz must be positive")
    if grid.halo < STENCIL_REACH:
        raise ValueError(f"grid.halo must be >= {STENCIL_REACH} for receiver derivative stencils")
    return grid


def _parse_seismo(d: Dict[str, Any]) -> SeismoConfig:
    s = _section(d, "seismo", {"mode", "nt", "ndt", "receivers"})
    _require(s, "seismo", ("nt",))
    ndt = int(s.get("ndt", 1))
    if ndt < 1:
        raise ValueError("seismo.ndt must be >= 1")
    nt = int(s["nt"])
    if nt < ndt:
        raise ValueError("seismo.nt must be >= seismo.ndt (at least one sample)")
    points = s.get("receivers", []) or []
    if not isinstance(points, (list, tuple)):
        raise ValueError(f"seismo.receivers must be a list of [ix, iy, iz], got {points!r}")
    recs = []
    for p in points:
        if not isinstance(p, (list, tuple)) or len(p) != 3:
            raise ValueError(f"seismo.receivers entries must be [ix, iy, iz], got {p!r}")
        recs.append((int(p[0]), int(p[1]), int(p[2])))
    return SeismoConfig(mode=SeismoMode.parse(s.get("mode", "all")), nt=nt, ndt=ndt, receivers=recs)


def _parse_model(d: Dict[str, Any]) -> ModelConfig:
    m = _section(d, "model", {"vp", "vs", "rho"}, required=False)
    model = ModelConfig(
        vp=float(m.get("vp", 3500.0)),
        vs=float(m.get("vs", 0.0)),
        rho=float(m.get("rho", 2000.0)),
    )
    if model.vp <= 0.0 or model.rho <= 0.0 or model.vs < 0.0:
        raise ValueError("model.vp and model.rho must be positive, model.vs non-negative")
    return model


def config_from_dict(d: Dict[str, Any]) -> Config:
    if not isinstance(d, dict):
        raise ValueError("config root must be a mapping")
    extra = sorted(set(d.keys()) - _SECTIONS)
    if extra:
        raise ValueError(f"config contains unsupported sections: {extra}")
    return Config(grid=_parse_grid(d), seismo=_parse_seismo(d), model=_parse_model(d))


def load_config(path: str) -> Config:
    with open(path,"r",encoding="utf-8") as f:
        d = yaml.safe_load(f)
    return config_from_dict(d)
