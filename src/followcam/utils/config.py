from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from followcam.utils.errors import ConfigurationError


def load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a dict at root of YAML: {path}")
    return data


def resolve_path(path: str, base_dir: Optional[str] = None) -> str:
    p = Path(path).expanduser()
    if p.is_absolute():
        return str(p)
    if base_dir is None:
        base_dir = os.getcwd()
    return str((Path(base_dir) / p).resolve())


@dataclass(frozen=True)
class VideoConfig:
    width: int = 1920
    height: int = 1080
    frame_rate: int = 30
    bit_rate: int = 5_000_000
    codecs: Tuple[str, ...] = ("libx265", "libx264", "mpeg4")
    pixel_format: str = "yuv420p"
    timescale: int = 600

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(f"Invalid video dimensions: {self.width}x{self.height}")
        if self.width % 2 or self.height % 2:
            raise ConfigurationError(f"Video dimensions must be even for {self.pixel_format}: {self.width}x{self.height}")
        if self.frame_rate <= 0:
            raise ConfigurationError(f"Invalid frame rate: {self.frame_rate}")
        if not self.codecs:
            raise ConfigurationError("At least one video codec is required")

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "VideoConfig":
        codecs = d.get("codecs", VideoConfig.codecs)
        if isinstance(codecs, str):
            codecs = [codecs]
        return VideoConfig(
            width=int(d.get("width", 1920)),
            height=int(d.get("height", 1080)),
            frame_rate=int(d.get("frame_rate", 30)),
            bit_rate=int(d.get("bit_rate", 5_000_000)),
            codecs=tuple(str(c) for c in codecs),
            pixel_format=str(d.get("pixel_format", "yuv420p")),
            timescale=int(d.get("timescale", 600)),
        )


@dataclass(frozen=True)
class AudioConfig:
    enabled: bool = True
    codec: str = "aac"
    sample_rate: int = 44100
    slow_motion_sample_rate: int = 22050
    channels: int = 1
    bit_rate: int = 64_000

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "AudioConfig":
        return AudioConfig(
            enabled=bool(d.get("enabled", True)),
            codec=str(d.get("codec", "aac")),
            sample_rate=int(d.get("sample_rate", 44100)),
            slow_motion_sample_rate=int(d.get("slow_motion_sample_rate", 22050)),
            channels=int(d.get("channels", 1)),
            bit_rate=int(d.get("bit_rate", 64_000)),
        )

    def rate_for(self, slow_motion: bool) -> int:
        return self.slow_motion_sample_rate if slow_motion else self.sample_rate


@dataclass(frozen=True)
class SlowMotionConfig:
    enabled: bool = False
    factor: Fraction = Fraction(4)
    capture_frame_rate: int = 120

    def __post_init__(self) -> None:
        if Fraction(self.factor) <= 0:
            raise ConfigurationError(f"Slow-motion factor must be positive: {self.factor}")

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SlowMotionConfig":
        return SlowMotionConfig(
            enabled=bool(d.get("enabled", False)),
            factor=Fraction(str(d.get("factor", 4))),
            capture_frame_rate=int(d.get("capture_frame_rate", 120)),
        )


@dataclass(frozen=True)
class DetectionConfig:
    enabled: bool = True
    backend: str = "mock"
    params: Dict[str, Any] = field(default_factory=dict)
    subject_class: str = "person"
    conf_threshold: float = 0.70

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "DetectionConfig":
        return DetectionConfig(
            enabled=bool(d.get("enabled", True)),
            backend=str(d.get("backend", "mock")),
            params=dict(d.get("params", {}) or {}),
            subject_class=str(d.get("subject_class", "person")),
            conf_threshold=float(d.get("conf_threshold", 0.70)),
        )


@dataclass(frozen=True)
class OutputConfig:
    scratch_dir: str = ""
    container: str = "mp4"
    destination_dir: str = "recordings"
    log_format: str = "jsonl"

    @staticmethod
    def from_dict(d: Dict[str, Any], base_dir: Optional[str] = None) -> "OutputConfig":
        scratch = str(d.get("scratch_dir", "") or "")
        log_format = str(d.get("log_format", "jsonl")).lower()
        if log_format not in {"jsonl", "csv"}:
            raise ConfigurationError(f"Unknown output.log_format: {log_format}")
        return OutputConfig(
            scratch_dir=resolve_path(scratch, base_dir) if scratch else "",
            container=str(d.get("container", "mp4")).lstrip("."),
            destination_dir=resolve_path(str(d.get("destination_dir", "recordings")), base_dir),
            log_format=log_format,
        )

    def scratch_path(self) -> str:
        return self.scratch_dir or tempfile.gettempdir()


@dataclass(frozen=True)
class SmoothingConfig:
    window_size: int = 10
    max_deviation: float = 40.0
    kernel_size: int = 5
    edge_mode: str = "zero"
    frame_skip: int = 20

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SmoothingConfig":
        return SmoothingConfig(
            window_size=int(d.get("window_size", 10)),
            max_deviation=float(d.get("max_deviation", 40.0)),
            kernel_size=int(d.get("kernel_size", 5)),
            edge_mode=str(d.get("edge_mode", "zero")).lower(),
            frame_skip=int(d.get("frame_skip", 20)),
        )


@dataclass(frozen=True)
class RecorderConfig:
    video: VideoConfig
    audio: AudioConfig
    slow_motion: SlowMotionConfig
    detection: DetectionConfig
    output: OutputConfig
    smoothing: SmoothingConfig
    camera: Dict[str, Any]
    microphone: Dict[str, Any]
    notifier: Dict[str, Any]

    @staticmethod
    def from_dict(d: Dict[str, Any], base_dir: Optional[str] = None) -> "RecorderConfig":
        return RecorderConfig(
            video=VideoConfig.from_dict(dict(d.get("video", {}) or {})),
            audio=AudioConfig.from_dict(dict(d.get("audio", {}) or {})),
            slow_motion=SlowMotionConfig.from_dict(dict(d.get("slow_motion", {}) or {})),
            detection=DetectionConfig.from_dict(dict(d.get("detection", {}) or {})),
            output=OutputConfig.from_dict(dict(d.get("output", {}) or {}), base_dir),
            smoothing=SmoothingConfig.from_dict(dict(d.get("smoothing", {}) or {})),
            camera=dict(d.get("camera", {}) or {}),
            microphone=dict(d.get("microphone", {}) or {}),
            notifier=dict(d.get("notifier", {}) or {}),
        )

    @staticmethod
    def load(path: str, base_dir: Optional[str] = None) -> "RecorderConfig":
        return RecorderConfig.from_dict(load_yaml(path), base_dir=base_dir)
