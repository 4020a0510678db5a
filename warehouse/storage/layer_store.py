"""
Layer Store

Publishes silver and gold tables as parquet files. A layer is written to a
staging directory first and then swapped in, so readers see either the
previous load or the new one, never a mix. Layers published together are
all staged before the first swap and are restored together on failure.
Each publish fully replaces the layer's previous contents.
"""

import shutil
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import polars as pl
import structlog

from warehouse.config import get_settings

logger = structlog.get_logger(__name__)


class LayerStore:
    """
    Parquet-backed store for published layers.

    Layout: ``<root>/<layer>/<table>.parquet``

    Example:
        store = LayerStore("data/warehouse")
        store.publish("gold", {"dim_customers": df})
        tables = store.read("gold")
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root or get_settings().data_lake.output_path)

    def layer_path(self, layer: str) -> Path:
        return self.root / layer

    def exists(self, layer: str) -> bool:
        return self.layer_path(layer).is_dir()

    def publish(self, layer: str, tables: Dict[str, pl.DataFrame]) -> Path:
        """
        Replace ``layer`` with ``tables``.

        Returns:
            Path of the published layer directory
        """
        return self.publish_layers({layer: tables})[layer]

    def publish_layers(self, layers: Dict[str, Dict[str, pl.DataFrame]]) -> Dict[str, Path]:
        """
        Replace several layers as one unit.

        Every layer is written to staging before any of them is swapped in.
        If a write or a swap fails, layers already swapped are restored and
        the error is re-raised.

        Returns:
            Path of each published layer directory
        """
        self.root.mkdir(parents=True, exist_ok=True)
        token = uuid.uuid4().hex[:8]
        staged: Dict[str, Path] = {}

        try:
            for layer, tables in layers.items():
                staging = self.root / f".{layer}.staging-{token}"
                staging.mkdir()
                staged[layer] = staging
                for name, df in tables.items():
                    df.write_parquet(staging / f"{name}.parquet")
        except Exception:
            self._discard(staged.values())
            raise

        swapped: List[Tuple[Path, Optional[Path]]] = []
        try:
            for layer, staging in staged.items():
                target = self.layer_path(layer)
                retired = None
                if target.exists():
                    retired = self.root / f".{layer}.retired-{token}"
                    target.rename(retired)
                swapped.append((target, retired))
                staging.rename(target)
        except Exception:
            logger.error("Layer swap failed, restoring previous layers", layers=list(layers))
            self._restore(swapped)
            self._discard(staged.values())
            raise

        self._discard(retired for _, retired in swapped if retired is not None)

        for layer, tables in layers.items():
            logger.info(
                "Layer published",
                layer=layer,
                path=str(self.layer_path(layer)),
                tables={name: df.height for name, df in tables.items()},
            )
        return {layer: self.layer_path(layer) for layer in layers}

    def _restore(self, swapped: List[Tuple[Path, Optional[Path]]]) -> None:
        """Put retired layers back in place, newest swap first"""
        for target, retired in reversed(swapped):
            if target.exists():
                shutil.rmtree(target)
            if retired is not None:
                retired.rename(target)

    @staticmethod
    def _discard(paths: Iterable[Path]) -> None:
        for path in paths:
            shutil.rmtree(path, ignore_errors=True)

    def read(self, layer: str) -> Dict[str, pl.DataFrame]:
        """Read every table of a published layer"""
        path = self.layer_path(layer)
        if not path.is_dir():
            raise FileNotFoundError(f"Layer not published: {path}")
        return {
            file.stem: pl.read_parquet(file)
            for file in sorted(path.glob("*.parquet"))
        }
