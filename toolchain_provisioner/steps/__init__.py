from .step_10_select_base_image import SelectBaseImageStep
from .step_20_install_packages import InstallPackagesStep
from .step_30_fetch_source import FetchSourceStep
from .step_40_build_source import BuildSourcesStep, BuildSourceStep
from .step_50_finalize_environment import FinalizeEnvironmentStep
from .step_60_verify_toolchain import VerifyToolchainStep

__all__ = [
    "SelectBaseImageStep",
    "InstallPackagesStep",
    "FetchSourceStep",
    "BuildSourceStep",
    "BuildSourcesStep",
    "FinalizeEnvironmentStep",
    "VerifyToolchainStep",
]
