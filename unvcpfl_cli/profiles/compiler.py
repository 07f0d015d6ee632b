"""Profile compiler that converts profiles to launch environments and wrapper chains."""

import logging
import shlex
from dataclasses import dataclass
from dataclasses import field

from ..errors import Issue
from ..errors import IssueKind
from .schema import GamescopeSettings
from .schema import Profile

logger = logging.getLogger(__name__)

EnvironmentSet = dict[str, str]

# Outermost first. Each wrapper re-executes the rest of the command line, so
# gamescope must enclose everything that should render inside its nested
# surface, and dlss-swapper must sit directly in front of the game.
WRAPPER_ORDER = ("game-performance", "gamemoderun", "mangohud", "gamescope", "dlss-swapper")

VKD3D_FLAG_ORDER = ("nodxr", "dxr", "dxr12", "force_static_cbv", "single_queue", "no_upload_hvv")


@dataclass(frozen=True)
class WrapperFragment:
    """One command prefix in the wrapper chain."""

    name: str
    argv: tuple[str, ...]


WrapperChain = tuple[WrapperFragment, ...]


@dataclass(frozen=True)
class CompiledLaunch:
    """Single compiled representation of a profile.

    Everything that needs the profile's launch semantics (process launch,
    copy/paste renderings) is derived from this object.
    """

    profile_name: str
    env: EnvironmentSet = field(default_factory=dict)
    wrappers: WrapperChain = ()
    extra_args: tuple[str, ...] = ()
    warnings: tuple[Issue, ...] = ()

    @property
    def wrapper_argv(self) -> list[str]:
        return [arg for fragment in self.wrappers for arg in fragment.argv]

    @property
    def wrapper_names(self) -> list[str]:
        return [fragment.name for fragment in self.wrappers]

    @property
    def is_empty(self) -> bool:
        return not self.env and not self.wrappers and not self.extra_args


def compile_profile(profile: Profile) -> CompiledLaunch:
    """
    Compile a profile into its environment and wrapper chain.

    Pure: the same profile always yields an equal result, and nothing outside
    the returned object is touched.

    Args:
        profile: Validated profile

    Returns:
        CompiledLaunch with env, wrappers, extra args and carried-over warnings
    """
    env = build_environment(profile)
    wrappers = build_wrapper_chain(profile)
    extra_args = tuple(shlex.split(profile.custom_args)) if profile.custom_args else ()
    warnings = tuple(Issue(IssueKind.VALIDATION_DEGRADED, message) for message in profile.degraded)

    logger.debug(f"Compiled profile '{profile.name}': {len(env)} env vars, wrappers={[w.name for w in wrappers]}")

    return CompiledLaunch(
        profile_name=profile.name,
        env=env,
        wrappers=wrappers,
        extra_args=extra_args,
        warnings=warnings,
    )


def build_environment(profile: Profile) -> EnvironmentSet:
    """
    Build environment variables from a profile.

    Stages run in a fixed order and later stages overwrite earlier ones:
    upscaling, DXVK, VKD3D, NVIDIA, Proton, frame limiter, overlay, custom env.
    Settings left at their default contribute nothing.
    """
    env: EnvironmentSet = {}
    _upscaling_stage(profile, env)
    _dxvk_stage(profile, env)
    _vkd3d_stage(profile, env)
    _nvidia_stage(profile, env)
    _proton_stage(profile, env)
    _frame_limiter_stage(profile, env)
    _overlay_stage(profile, env)

    for key in sorted(profile.custom_env):
        env[key] = profile.custom_env[key]

    return env


def _upscaling_stage(profile: Profile, env: EnvironmentSet) -> None:
    dlss = profile.dlss
    if dlss.upgrade:
        env["PROTON_DLSS_UPGRADE"] = "1"
    if dlss.indicator:
        env["PROTON_DLSS_INDICATOR"] = "1"
    if dlss.ngx_updater:
        env["PROTON_ENABLE_NGX_UPDATER"] = "1"
    if dlss.sr_override:
        env["DXVK_NVAPI_DRS_NGX_DLSS_SR_OVERRIDE"] = "1"
    if dlss.rr_override:
        env["DXVK_NVAPI_DRS_NGX_DLSS_RR_OVERRIDE"] = "1"
    if dlss.fg_override:
        env["DXVK_NVAPI_DRS_NGX_DLSS_FG_OVERRIDE"] = "1"
    if dlss.sr_preset:
        env["DXVK_NVAPI_DRS_NGX_DLSS_SR_PRESET"] = dlss.sr_preset
    if dlss.rr_preset:
        env["DXVK_NVAPI_DRS_NGX_DLSS_RR_PRESET"] = dlss.rr_preset
    if dlss.fg_multi_frame is not None:
        env["DXVK_NVAPI_DRS_NGX_DLSSG_MULTI_FRAME_COUNT"] = str(dlss.fg_multi_frame)


def _dxvk_stage(profile: Profile, env: EnvironmentSet) -> None:
    dxvk = profile.dxvk
    if dxvk.hud:
        env["DXVK_HUD"] = dxvk.hud
    if dxvk.nvapi:
        env["DXVK_ENABLE_NVAPI"] = "1"
    if dxvk.async_compile:
        env["DXVK_ASYNC"] = "1"
    if not dxvk.shader_cache:
        env["DXVK_SHADER_CACHE"] = "0"


def _vkd3d_stage(profile: Profile, env: EnvironmentSet) -> None:
    vkd3d = profile.vkd3d
    flags = {
        "nodxr": vkd3d.no_dxr,
        # Disabling raytracing wins over any request to force it
        "dxr": vkd3d.force_dxr and not vkd3d.no_dxr,
        "dxr12": vkd3d.dxr12 and not vkd3d.no_dxr,
        "force_static_cbv": vkd3d.force_static_cbv,
        "single_queue": vkd3d.single_queue,
        "no_upload_hvv": vkd3d.no_upload_hvv,
    }
    enabled = [flag for flag in VKD3D_FLAG_ORDER if flags[flag]]
    if enabled:
        env["VKD3D_CONFIG"] = ",".join(enabled)
    if vkd3d.frame_rate > 0:
        env["VKD3D_FRAME_RATE"] = str(vkd3d.frame_rate)


def _nvidia_stage(profile: Profile, env: EnvironmentSet) -> None:
    nv = profile.nvidia
    if nv.threaded_optimization is not None:
        env["__GL_THREADED_OPTIMIZATIONS"] = "0" if nv.threaded_optimization == "off" else "1"
    if nv.shader_cache_size is not None:
        env["__GL_SHADER_DISK_CACHE_SIZE"] = str(nv.shader_cache_size)
    if nv.skip_cleanup:
        env["__GL_SHADER_DISK_CACHE_SKIP_CLEANUP"] = "1"
    if nv.vsync is not None:
        env["__GL_SYNC_TO_VBLANK"] = "1" if nv.vsync == "on" else "0"
    if nv.prime:
        env["__NV_PRIME_RENDER_OFFLOAD"] = "1"
        env["__VK_LAYER_NV_optimus"] = "NVIDIA_only"
        env["__GLX_VENDOR_LIBRARY_NAME"] = "nvidia"
    if nv.smooth_motion:
        env["NVPRESENT_ENABLE_SMOOTH_MOTION"] = "1"


def _proton_stage(profile: Profile, env: EnvironmentSet) -> None:
    proton = profile.proton
    if proton.verb:
        env["PROTON_VERB"] = proton.verb
    if proton.sync_mode == "esync":
        env["PROTON_NO_FSYNC"] = "1"
    elif proton.sync_mode == "fsync":
        env["PROTON_NO_ESYNC"] = "1"
    elif proton.sync_mode == "ntsync":
        env["WINEFSYNC_FUTEX2"] = "1"
    if proton.enable_wayland:
        env["PROTON_ENABLE_WAYLAND"] = "1"
    if proton.enable_hdr:
        env["PROTON_ENABLE_HDR"] = "1"
    if proton.integer_scaling:
        env["WINE_FULLSCREEN_INTEGER_SCALING"] = "1"


def _frame_limiter_stage(profile: Profile, env: EnvironmentSet) -> None:
    limiter = profile.wrappers.frame_limiter
    if not limiter.enabled:
        return
    if limiter.target_fps is not None:
        env["DXVK_FRAME_RATE"] = str(limiter.target_fps)
        env["VKD3D_FRAME_RATE"] = str(limiter.target_fps)
    if limiter.swapchain_latency is not None:
        env["VKD3D_SWAPCHAIN_LATENCY_FRAMES"] = str(limiter.swapchain_latency)


def _overlay_stage(profile: Profile, env: EnvironmentSet) -> None:
    mangohud = profile.wrappers.mangohud
    if mangohud.enabled and mangohud.fps_limit_enabled and mangohud.fps_limit is not None:
        config = f"fps_limit={mangohud.fps_limit}"
        if mangohud.fps_limiter_mode:
            config += f",fps_limit_method={mangohud.fps_limiter_mode}"
        env["MANGOHUD_CONFIG"] = config


def build_wrapper_chain(profile: Profile) -> WrapperChain:
    """
    Build the wrapper chain, outermost first.

    The order is fixed by WRAPPER_ORDER and does not depend on the order in
    which settings were written to the profile.
    """
    wrappers = profile.wrappers
    fragments: dict[str, tuple[str, ...]] = {}

    if wrappers.game_performance:
        fragments["game-performance"] = ("game-performance",)
    if wrappers.gamemode:
        fragments["gamemoderun"] = ("gamemoderun",)
    if wrappers.mangohud.enabled:
        fragments["mangohud"] = ("mangohud",)
    if wrappers.gamescope.enabled:
        fragments["gamescope"] = tuple(_gamescope_argv(wrappers.gamescope))
    if wrappers.dlss_swapper:
        fragments["dlss-swapper"] = ("dlss-swapper",)

    return tuple(WrapperFragment(name, fragments[name]) for name in WRAPPER_ORDER if name in fragments)


def _gamescope_argv(gs: GamescopeSettings) -> list[str]:
    argv = ["gamescope"]

    if gs.width is not None:
        argv += ["-W", str(gs.width)]
    if gs.height is not None:
        argv += ["-H", str(gs.height)]

    # A supersampled pair replaces the internal resolution outright
    if gs.uses_dsr:
        argv += ["-w", str(gs.dsr_width), "-h", str(gs.dsr_height)]
    else:
        if gs.internal_width is not None:
            argv += ["-w", str(gs.internal_width)]
        if gs.internal_height is not None:
            argv += ["-h", str(gs.internal_height)]

    if gs.upscale_filter:
        argv += ["-F", gs.upscale_filter]
    if gs.fsr_sharpness is not None:
        argv += ["--fsr-sharpness", str(gs.fsr_sharpness)]
    if gs.fullscreen:
        argv.append("-f")
    if gs.borderless:
        argv.append("-b")
    if gs.vrr:
        argv.append("--adaptive-sync")
    if gs.framelimit is not None:
        argv += ["-r", str(gs.framelimit)]
    if gs.mangoapp:
        argv.append("--mangoapp")
    if gs.hdr:
        argv.append("--hdr-enabled")

    argv.append("--")
    return argv
