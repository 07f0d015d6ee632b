"""Pydantic schemas for game launch profiles.

Every category is a flat set of typed optional fields. Documents are
validated once, at the store boundary, where the named default-substitution
rules below replace invalid or incomplete values instead of rejecting the
document. Each substitution is recorded on ``Profile.degraded``.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel
from pydantic import Field
from pydantic import model_validator

from ..screen.models import MonitorPlan

logger = logging.getLogger(__name__)

SYNC_MODES = ("default", "esync", "fsync", "ntsync")
UPSCALE_FILTERS = ("linear", "nearest", "fsr", "nis", "pixel")
FPS_LIMITER_MODES = ("early", "late")
THREADED_OPTIMIZATION_MODES = ("auto", "on", "off")
VSYNC_MODES = ("on", "off")


class DlssSettings(BaseModel):
    """Upscaling (DLSS through Proton and DXVK-NVAPI)."""

    upgrade: bool = False
    indicator: bool = False
    ngx_updater: bool = False
    sr_override: bool = False
    rr_override: bool = False
    fg_override: bool = False
    sr_preset: str | None = Field(None, description="Super resolution preset letter, e.g. 'K'")
    rr_preset: str | None = Field(None, description="Ray reconstruction preset letter")
    fg_multi_frame: int | None = Field(None, description="Frame generation multiplier (2-4)")


class DxvkSettings(BaseModel):
    """D3D9-11 translation layer tuning."""

    hud: str | None = None
    nvapi: bool = False
    async_compile: bool = False
    shader_cache: bool = True


class Vkd3dSettings(BaseModel):
    """D3D12 translation layer tuning."""

    no_dxr: bool = Field(False, description="Disable raytracing; wins over force_dxr and dxr12")
    force_dxr: bool = False
    dxr12: bool = False
    force_static_cbv: bool = False
    single_queue: bool = False
    no_upload_hvv: bool = False
    frame_rate: int = 0


class NvidiaSettings(BaseModel):
    """NVIDIA driver behavior."""

    threaded_optimization: str | None = Field(None, description="auto, on or off")
    shader_cache_size: int | None = Field(None, description="Shader disk cache size in bytes")
    skip_cleanup: bool = False
    vsync: str | None = Field(None, description="on or off")
    prime: bool = False
    smooth_motion: bool = Field(False, description="RTX 40/50 only")


class ProtonSettings(BaseModel):
    """Compatibility layer options."""

    verb: str | None = None
    sync_mode: str = Field("default", description="default, esync, fsync or ntsync")
    enable_wayland: bool = False
    enable_hdr: bool = False
    integer_scaling: bool = False


class MangoHudSettings(BaseModel):
    """Performance overlay."""

    enabled: bool = False
    fps_limit_enabled: bool = False
    fps_limit: int | None = None
    fps_limiter_mode: str | None = Field(None, description="early or late")


class GamescopeSettings(BaseModel):
    """Compositor-scaling wrapper."""

    enabled: bool = False
    width: int | None = None
    height: int | None = None
    internal_width: int | None = None
    internal_height: int | None = None
    dsr_enabled: bool = Field(False, description="Render above output resolution and downscale")
    dsr_width: int | None = None
    dsr_height: int | None = None
    upscale_filter: str | None = None
    fsr_sharpness: int | None = Field(None, description="0 (sharpest) to 20")
    fullscreen: bool = True
    borderless: bool = False
    vrr: bool = False
    framelimit: int | None = None
    mangoapp: bool = False
    hdr: bool = False

    @property
    def uses_dsr(self) -> bool:
        return self.dsr_enabled and self.dsr_width is not None and self.dsr_height is not None


class FrameLimiterSettings(BaseModel):
    """Translation-layer frame limiter."""

    enabled: bool = False
    target_fps: int | None = None
    swapchain_latency: int | None = None


class WrapperSettings(BaseModel):
    """Wrapper toggles and the optional GPU power profile switch."""

    game_performance: bool = Field(False, description="Scheduler optimization wrapper")
    gamemode: bool = False
    mangohud: MangoHudSettings = Field(default_factory=MangoHudSettings)
    gamescope: GamescopeSettings = Field(default_factory=GamescopeSettings)
    dlss_swapper: bool = Field(False, description="Binary injection wrapper")
    frame_limiter: FrameLimiterSettings = Field(default_factory=FrameLimiterSettings)
    gpu_profile: str | None = Field(None, description="GPU power profile to activate for the session")
    gpu_profile_restore_after_exit: bool = True


class Profile(BaseModel):
    """Launch profile for one game or template."""

    name: str = Field(..., description="Unique profile name")
    description: str | None = None
    is_template: bool = Field(False, description="Reusable template rather than a per-game binding")
    executable_match: str | None = Field(None, description="Executable file name this profile binds to")
    steam_appid: int | None = Field(None, description="Store identifier this profile binds to")

    dlss: DlssSettings = Field(default_factory=DlssSettings)
    dxvk: DxvkSettings = Field(default_factory=DxvkSettings)
    vkd3d: Vkd3dSettings = Field(default_factory=Vkd3dSettings)
    nvidia: NvidiaSettings = Field(default_factory=NvidiaSettings)
    proton: ProtonSettings = Field(default_factory=ProtonSettings)
    wrappers: WrapperSettings = Field(default_factory=WrapperSettings)
    screen: MonitorPlan = Field(default_factory=MonitorPlan)

    custom_env: dict[str, str] = Field(default_factory=dict)
    custom_args: str | None = None

    degraded: list[str] = Field(default_factory=list, exclude=True, description="Default substitutions applied")

    @model_validator(mode="after")
    def _substitute_defaults(self) -> Profile:
        messages = [message for rule in DEFAULT_RULES if (message := rule(self))]
        for message in messages:
            logger.warning(f"Profile '{self.name}': {message}")
        self.degraded = messages
        return self

    def to_document(self) -> dict[str, Any]:
        """Serialize for storage, dropping unset optionals (TOML has no null)."""
        return self.model_dump(exclude_none=True)


# Default-substitution rules. Each returns a message when it changed something.


def _frame_limiter_without_target(p: Profile) -> str | None:
    fl = p.wrappers.frame_limiter
    if fl.target_fps is not None and fl.target_fps <= 0:
        fl.target_fps = None
        if fl.enabled and fl.swapchain_latency is None:
            fl.enabled = False
        return "frame_limiter.target_fps must be positive; limiter target dropped"
    if fl.enabled and fl.target_fps is None and fl.swapchain_latency is None:
        fl.enabled = False
        return "frame_limiter enabled without target_fps; limiter disabled"
    return None


def _mangohud_limit_without_fps(p: Profile) -> str | None:
    mh = p.wrappers.mangohud
    if mh.fps_limit_enabled and (mh.fps_limit is None or mh.fps_limit <= 0):
        mh.fps_limit_enabled = False
        mh.fps_limit = None
        return "mangohud.fps_limit_enabled without a positive fps_limit; overlay limit disabled"
    return None


def _mangohud_limiter_mode(p: Profile) -> str | None:
    mh = p.wrappers.mangohud
    if mh.fps_limiter_mode is not None and mh.fps_limiter_mode not in FPS_LIMITER_MODES:
        bad, mh.fps_limiter_mode = mh.fps_limiter_mode, None
        return f"unknown mangohud.fps_limiter_mode '{bad}'; using overlay default"
    return None


def _gamescope_partial_dsr(p: Profile) -> str | None:
    gs = p.wrappers.gamescope
    if gs.dsr_enabled and (gs.dsr_width is None or gs.dsr_height is None):
        gs.dsr_enabled = False
        return "gamescope.dsr_enabled needs both dsr_width and dsr_height; DSR ignored"
    return None


def _gamescope_upscale_filter(p: Profile) -> str | None:
    gs = p.wrappers.gamescope
    if gs.upscale_filter is not None and gs.upscale_filter not in UPSCALE_FILTERS:
        bad, gs.upscale_filter = gs.upscale_filter, None
        return f"unknown gamescope.upscale_filter '{bad}'; using gamescope default"
    return None


def _gamescope_fsr_sharpness(p: Profile) -> str | None:
    gs = p.wrappers.gamescope
    if gs.fsr_sharpness is not None and not 0 <= gs.fsr_sharpness <= 20:
        bad, gs.fsr_sharpness = gs.fsr_sharpness, None
        return f"gamescope.fsr_sharpness {bad} outside 0-20; using gamescope default"
    return None


def _gamescope_framelimit(p: Profile) -> str | None:
    gs = p.wrappers.gamescope
    if gs.framelimit is not None and gs.framelimit <= 0:
        gs.framelimit = None
        return "gamescope.framelimit must be positive; limit dropped"
    return None


def _dlss_multi_frame(p: Profile) -> str | None:
    dlss = p.dlss
    if dlss.fg_multi_frame is not None and not 2 <= dlss.fg_multi_frame <= 4:
        bad, dlss.fg_multi_frame = dlss.fg_multi_frame, None
        return f"dlss.fg_multi_frame {bad} outside 2-4; using driver default"
    return None


def _vkd3d_frame_rate(p: Profile) -> str | None:
    if p.vkd3d.frame_rate < 0:
        p.vkd3d.frame_rate = 0
        return "vkd3d.frame_rate must not be negative; limit dropped"
    return None


def _nvidia_threaded_optimization(p: Profile) -> str | None:
    nv = p.nvidia
    if nv.threaded_optimization is not None and nv.threaded_optimization not in THREADED_OPTIMIZATION_MODES:
        bad, nv.threaded_optimization = nv.threaded_optimization, "auto"
        return f"unknown nvidia.threaded_optimization '{bad}'; using 'auto'"
    return None


def _nvidia_vsync(p: Profile) -> str | None:
    nv = p.nvidia
    if nv.vsync is not None and nv.vsync not in VSYNC_MODES:
        bad, nv.vsync = nv.vsync, None
        return f"unknown nvidia.vsync '{bad}'; leaving driver default"
    return None


def _proton_sync_mode(p: Profile) -> str | None:
    if p.proton.sync_mode not in SYNC_MODES:
        bad, p.proton.sync_mode = p.proton.sync_mode, "default"
        return f"unknown proton.sync_mode '{bad}'; using 'default'"
    return None


def _screen_partial_resolution(p: Profile) -> str | None:
    screen = p.screen
    if (screen.width is None) != (screen.height is None):
        screen.width = screen.height = None
        return "screen resolution needs both width and height; resolution override dropped"
    return None


def _screen_refresh_rate(p: Profile) -> str | None:
    screen = p.screen
    if screen.refresh_rate is not None and screen.refresh_rate <= 0:
        screen.refresh_rate = None
        return "screen.refresh_rate must be positive; refresh override dropped"
    return None


def _screen_scale(p: Profile) -> str | None:
    screen = p.screen
    if screen.scale is not None and screen.scale <= 0:
        screen.scale = None
        return "screen.scale must be positive; scale override dropped"
    return None


def _custom_env_names(p: Profile) -> str | None:
    bad = [key for key in p.custom_env if not key or "=" in key or any(c.isspace() for c in key)]
    if not bad:
        return None
    for key in bad:
        del p.custom_env[key]
    return f"custom_env names {bad} are not valid variable names; dropped"


def _custom_args_quoting(p: Profile) -> str | None:
    if p.custom_args is None:
        return None
    try:
        shlex.split(p.custom_args)
    except ValueError as e:
        p.custom_args = None
        return f"custom_args could not be parsed ({e}); ignored"
    return None


DEFAULT_RULES: tuple[Callable[[Profile], str | None], ...] = (
    _frame_limiter_without_target,
    _mangohud_limit_without_fps,
    _mangohud_limiter_mode,
    _gamescope_partial_dsr,
    _gamescope_upscale_filter,
    _gamescope_fsr_sharpness,
    _gamescope_framelimit,
    _dlss_multi_frame,
    _vkd3d_frame_rate,
    _nvidia_threaded_optimization,
    _nvidia_vsync,
    _proton_sync_mode,
    _screen_partial_resolution,
    _screen_refresh_rate,
    _screen_scale,
    _custom_env_names,
    _custom_args_quoting,
)
