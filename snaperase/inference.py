"""
Inference adapters: the one seam between the pipeline and a model runtime.

An adapter takes a (1, 3, S, S) float32 tensor and returns a (1, 1, S, S)
float32 tensor. Nothing else about the model is assumed. Variants:
 - `OnnxInferenceAdapter` for `.onnx` exports (U2-Net family),
 - `TorchScriptInferenceAdapter` for `torch.jit` exports,
 - `ConstantInferenceAdapter`, a deterministic stub for tests and dry runs.

Real adapters load their model lazily on first use, once, under a lock.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from pathlib import Path
from threading import Lock
from typing import Any, List, Optional, Protocol, Sequence

import numpy as np
import onnxruntime as ort
import torch

from . import config
from .errors import InferenceFailure, ModelUnavailable

logger = logging.getLogger(__name__)


class InferenceAdapter(Protocol):
    input_side: int
    reentrant: bool

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        ...


def default_torch_device() -> torch.device:
    """Prefer CUDA -> Apple MPS -> CPU."""
    if torch.cuda.is_available():
        return torch.device("cuda")
    if torch.backends.mps.is_available():  # type: ignore[attr-defined]
        return torch.device("mps")
    return torch.device("cpu")


def default_onnx_providers() -> List[str]:
    """Provider priority: CUDA -> DirectML -> CPU."""
    available = ort.get_available_providers()
    providers = []
    if "CUDAExecutionProvider" in available:
        providers.append("CUDAExecutionProvider")
    if "DmlExecutionProvider" in available:
        providers.append("DmlExecutionProvider")
    providers.append("CPUExecutionProvider")
    return providers


def _require_model_file(model_path: Optional[Path]) -> Path:
    if model_path is None:
        raise ModelUnavailable("No model path configured (set U2NET_MODEL_PATH)")
    model_path = Path(model_path)
    if not model_path.is_file():
        raise ModelUnavailable(f"Model artifact not found at {model_path}")
    return model_path


class _LazyModelAdapter(ABC):
    """Shared double-checked lazy loading for file-backed adapters."""

    def __init__(self, model_path: Optional[Path], input_side: int):
        self.model_path = Path(model_path) if model_path is not None else None
        self.input_side = input_side
        self._model: Any = None
        self._lock = Lock()

    @abstractmethod
    def _load(self, model_path: Path) -> Any:
        """Build the runtime object for `model_path`. Called once, under the lock."""

    def _get_model(self) -> Any:
        if self._model is not None:
            return self._model
        with self._lock:
            if self._model is None:
                model_path = _require_model_file(self.model_path)
                try:
                    self._model = self._load(model_path)
                except ModelUnavailable:
                    raise
                except Exception as exc:  # noqa: BLE001
                    raise ModelUnavailable(f"Could not load model from {model_path}: {exc}") from exc
                logger.info("Model loaded from %s (%s)", model_path, type(self).__name__)
        return self._model

    def load(self) -> None:
        """Load eagerly, e.g. at service start-up."""
        self._get_model()


class OnnxInferenceAdapter(_LazyModelAdapter):
    reentrant = True

    def __init__(
        self,
        model_path: Optional[Path],
        input_side: int,
        providers: Optional[Sequence[str]] = None,
    ):
        super().__init__(model_path, input_side)
        self.providers = list(providers) if providers else None

    def _load(self, model_path: Path) -> ort.InferenceSession:
        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        providers = self.providers or default_onnx_providers()
        logger.info("Creating ONNX session for %s with providers %s", model_path, providers)
        return ort.InferenceSession(str(model_path), sess_options=options, providers=providers)

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        session = self._get_model()
        input_name = session.get_inputs()[0].name
        try:
            outputs = session.run(None, {input_name: tensor})
        except Exception as exc:  # noqa: BLE001
            raise InferenceFailure(f"ONNX inference failed: {exc}") from exc
        # U2-Net emits the fused map first, followed by side outputs.
        return np.asarray(outputs[0], dtype=np.float32)


class TorchScriptInferenceAdapter(_LazyModelAdapter):
    reentrant = False

    def __init__(
        self,
        model_path: Optional[Path],
        input_side: int,
        device: Optional[torch.device] = None,
    ):
        super().__init__(model_path, input_side)
        self.device = device or default_torch_device()

    def _load(self, model_path: Path) -> torch.nn.Module:
        model = torch.jit.load(str(model_path), map_location=self.device)
        model.eval()
        return model

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        model = self._get_model()
        try:
            with torch.no_grad():
                output = model(torch.from_numpy(tensor).to(self.device))
        except Exception as exc:  # noqa: BLE001
            raise InferenceFailure(f"TorchScript inference failed: {exc}") from exc
        if isinstance(output, (tuple, list)):
            output = output[0]
        return output.detach().float().cpu().numpy()


class ConstantInferenceAdapter:
    """Returns the same confidence everywhere. Deterministic and reentrant."""

    reentrant = True

    def __init__(self, value: float, input_side: int):
        self.value = float(value)
        self.input_side = input_side

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        expected = (1, 3, self.input_side, self.input_side)
        if tensor.shape != expected:
            raise InferenceFailure(f"Expected input of shape {expected}, got {tensor.shape}")
        return np.full((1, 1, self.input_side, self.input_side), self.value, dtype=np.float32)


def build_adapter(
    settings: Optional[config.Settings] = None,
    profile: Optional[config.ModelProfile] = None,
) -> InferenceAdapter:
    """
    Choose an adapter from settings. `auto` picks ONNX for `.onnx` files and
    TorchScript otherwise. Nothing is loaded until the first `infer` call.
    """
    settings = settings or config.get_settings()
    profile = profile or config.resolve_model_profile(settings)
    model_path = settings.u2net_model_path

    backend = settings.inference_backend
    if backend == "auto":
        is_onnx = model_path is None or model_path.suffix.lower() == ".onnx"
        backend = "onnx" if is_onnx else "torchscript"

    logger.debug("Selected %s backend for %s", backend, model_path)
    if backend == "onnx":
        return OnnxInferenceAdapter(model_path, profile.input_side, providers=settings.onnx_providers)
    return TorchScriptInferenceAdapter(model_path, profile.input_side)
