import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest

TOOL_DIR = Path(__file__).resolve().parent.parent
if str(TOOL_DIR) not in sys.path:
    sys.path.insert(0, str(TOOL_DIR))

import clinfo  # noqa: E402


def string_info(text: str, size: int | None = None) -> clinfo.QueryResult:
    reported = len(text.encode("utf-8")) + 1 if size is None else size
    return clinfo.QueryResult(clinfo.CL_SUCCESS, text, reported)


def scalar_info(value: int, size: int = 8) -> clinfo.QueryResult:
    return clinfo.QueryResult(clinfo.CL_SUCCESS, value, size)


def array_info(values: tuple[int, ...], size: int | None = None) -> clinfo.QueryResult:
    reported = 8 * len(values) if size is None else size
    return clinfo.QueryResult(clinfo.CL_SUCCESS, values, reported)


def failed_info(status: int) -> clinfo.QueryResult:
    return clinfo.QueryResult(status)


@dataclass
class FakeDevice:
    info: dict[int, clinfo.QueryResult]
    formats: list[clinfo.ImageFormat] = field(default_factory=list)
    context_status: int = clinfo.CL_SUCCESS
    format_count_status: int = clinfo.CL_SUCCESS
    format_list_status: int = clinfo.CL_SUCCESS
    release_status: int = clinfo.CL_SUCCESS


@dataclass
class FakePlatform:
    info: dict[int, clinfo.QueryResult]
    devices: list[FakeDevice] = field(default_factory=list)
    device_count_status: int = clinfo.CL_SUCCESS
    device_list_status: int = clinfo.CL_SUCCESS


@dataclass
class FakeContext:
    device: FakeDevice


class FakeRuntime:
    """In-memory Runtime following the num_entries/size enumeration contract."""

    def __init__(
        self,
        platforms: list[FakePlatform],
        platform_count_status: int = clinfo.CL_SUCCESS,
        platform_list_status: int = clinfo.CL_SUCCESS,
    ) -> None:
        self.platforms = platforms
        self.platform_count_status = platform_count_status
        self.platform_list_status = platform_list_status
        self.created: list[FakeContext] = []
        self.released: list[FakeContext] = []
        self.format_queries: list[tuple[int, int, int]] = []

    def get_platform_ids(self, num_entries: int) -> clinfo.QueryResult:
        status = self.platform_list_status
        if num_entries == 0:
            status = self.platform_count_status
        if status != clinfo.CL_SUCCESS:
            return clinfo.QueryResult(status)
        return clinfo.QueryResult(
            clinfo.CL_SUCCESS, self.platforms[:num_entries], len(self.platforms)
        )

    def get_device_ids(
        self, platform: FakePlatform, device_type: int, num_entries: int
    ) -> clinfo.QueryResult:
        assert device_type == clinfo.CL_DEVICE_TYPE_ALL
        status = (
            platform.device_count_status
            if num_entries == 0
            else platform.device_list_status
        )
        if status != clinfo.CL_SUCCESS:
            return clinfo.QueryResult(status)
        return clinfo.QueryResult(
            clinfo.CL_SUCCESS, platform.devices[:num_entries], len(platform.devices)
        )

    def get_platform_info(
        self, platform: FakePlatform, param: int
    ) -> clinfo.QueryResult:
        return platform.info.get(param, failed_info(clinfo.CL_INVALID_VALUE))

    def get_device_info(self, device: FakeDevice, param: int) -> clinfo.QueryResult:
        return device.info.get(param, failed_info(clinfo.CL_INVALID_VALUE))

    def create_context(self, device: FakeDevice) -> clinfo.QueryResult:
        if device.context_status != clinfo.CL_SUCCESS:
            return clinfo.QueryResult(device.context_status)
        context = FakeContext(device)
        self.created.append(context)
        return clinfo.QueryResult(clinfo.CL_SUCCESS, context)

    def get_supported_image_formats(
        self, context: FakeContext, flags: int, image_type: int, num_entries: int
    ) -> clinfo.QueryResult:
        self.format_queries.append((flags, image_type, num_entries))
        device = context.device
        status = (
            device.format_count_status
            if num_entries == 0
            else device.format_list_status
        )
        if status != clinfo.CL_SUCCESS:
            return clinfo.QueryResult(status)
        return clinfo.QueryResult(
            clinfo.CL_SUCCESS, device.formats[:num_entries], len(device.formats)
        )

    def release_context(self, context: FakeContext) -> int:
        self.released.append(context)
        return context.device.release_status


@pytest.fixture
def make_platform_info() -> Callable[..., dict[int, clinfo.QueryResult]]:
    def _make_platform_info(
        **overrides: clinfo.QueryResult,
    ) -> dict[int, clinfo.QueryResult]:
        info = {
            clinfo.CL_PLATFORM_NAME: string_info("Portable Computing Language"),
            clinfo.CL_PLATFORM_VENDOR: string_info("The pocl project"),
            clinfo.CL_PLATFORM_PROFILE: string_info("FULL_PROFILE"),
            clinfo.CL_PLATFORM_VERSION: string_info("OpenCL 3.0 PoCL 5.0"),
            clinfo.CL_PLATFORM_EXTENSIONS: string_info(
                "cl_khr_icd cl_khr_fp64 cl_ext_device_fission"
            ),
        }
        for name, result in overrides.items():
            info[getattr(clinfo, name)] = result
        return info

    return _make_platform_info


@pytest.fixture
def make_device_info() -> Callable[..., dict[int, clinfo.QueryResult]]:
    def _make_device_info(
        **overrides: clinfo.QueryResult,
    ) -> dict[int, clinfo.QueryResult]:
        info = {
            clinfo.CL_DEVICE_TYPE: scalar_info(clinfo.CL_DEVICE_TYPE_GPU),
            clinfo.CL_DEVICE_NAME: string_info("Radeon RX 7900 XTX"),
            clinfo.CL_DEVICE_VENDOR: string_info("Advanced Micro Devices, Inc."),
            clinfo.CL_DEVICE_PROFILE: string_info("FULL_PROFILE"),
            clinfo.CL_DEVICE_VERSION: string_info("OpenCL 2.0 AMD-APP"),
            clinfo.CL_DRIVER_VERSION: string_info("3602.0 (HSA1.1,LC)"),
            clinfo.CL_DEVICE_EXTENSIONS: string_info(
                "cl_khr_fp64 cl_amd_media_ops cl_khr_byte_addressable_store"
            ),
            clinfo.CL_DEVICE_EXECUTION_CAPABILITIES: scalar_info(clinfo.CL_EXEC_KERNEL),
            clinfo.CL_DEVICE_GLOBAL_MEM_CACHE_TYPE: scalar_info(2),
            clinfo.CL_DEVICE_LOCAL_MEM_TYPE: scalar_info(1),
            clinfo.CL_DEVICE_SINGLE_FP_CONFIG: scalar_info(0xBE),
            clinfo.CL_DEVICE_QUEUE_PROPERTIES: scalar_info(0x2),
            clinfo.CL_DEVICE_MAX_WORK_ITEM_SIZES: array_info((1024, 1024, 1024)),
        }
        for descriptor in clinfo.DEVICE_PROPERTIES.properties:
            if descriptor.kind is clinfo.PropertyKind.LONG:
                info.setdefault(descriptor.param, scalar_info(1 << 20))
        for name, result in overrides.items():
            info[getattr(clinfo, name)] = result
        return info

    return _make_device_info


@pytest.fixture
def make_runtime(
    make_platform_info: Callable[..., dict[int, clinfo.QueryResult]],
    make_device_info: Callable[..., dict[int, clinfo.QueryResult]],
) -> Callable[..., FakeRuntime]:
    def _make_runtime(
        *,
        platforms: int = 1,
        devices: int = 1,
        formats: list[clinfo.ImageFormat] | None = None,
    ) -> FakeRuntime:
        return FakeRuntime(
            [
                FakePlatform(
                    info=make_platform_info(),
                    devices=[
                        FakeDevice(
                            info=make_device_info(),
                            formats=list(formats or []),
                        )
                        for _ in range(devices)
                    ],
                )
                for _ in range(platforms)
            ]
        )

    return _make_runtime
