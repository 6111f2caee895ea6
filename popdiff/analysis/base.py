import os
from contextlib import nullcontext
from pathlib import Path
from typing import IO, Any, Dict, Mapping, Optional, Union

import numpy as np
import zarr  # type: ignore
from tqdm.auto import tqdm as tqdm_auto  # type: ignore
from tqdm.dask import TqdmCallback  # type: ignore
from yaspin import yaspin  # type: ignore

from ..util import CacheMiss, LoggingHelper, check_types, hash_params


class PopDiffBase:
    def __init__(
        self,
        *,
        log: Optional[Union[str, IO]] = None,
        debug: bool = False,
        show_progress: Optional[bool] = None,
        results_cache: Optional[str] = None,
        tqdm_class=None,
    ):
        # If show_progress has not been specified, then determine the default.
        if show_progress is None:
            # Get the env var, if it exists.
            show_progress_env = os.getenv("POPDIFF_SHOW_PROGRESS")

            # If the env var does not exist, then use the class default.
            # Otherwise, convert the env var value to a boolean and use that.
            if show_progress_env is None:
                show_progress = True
            else:
                show_progress = show_progress_env.lower() in ("true", "1", "yes", "on")

        self._debug = debug
        self._show_progress = show_progress
        if tqdm_class is None:
            tqdm_class = tqdm_auto
        self._tqdm_class = tqdm_class

        # Set up logging.
        self._log = LoggingHelper(name=__name__, out=log, debug=debug)

        # Set up results cache directory path.
        self._results_cache: Optional[Path] = None
        if results_cache is not None:
            self._results_cache = Path(results_cache).expanduser().resolve()

    def _progress(self, iterable, desc=None, leave=False, **kwargs):  # pragma: no cover
        # Progress doesn't mix well with debug logging.
        show_progress = self._show_progress and not self._debug
        if show_progress:
            return self._tqdm_class(iterable, desc=desc, leave=leave, **kwargs)
        else:
            return iterable

    def _dask_progress(self, desc=None, leave=False, **kwargs):  # pragma: no cover
        # Progress doesn't mix well with debug logging.
        show_progress = self._show_progress and not self._debug
        if show_progress:
            return TqdmCallback(
                desc=desc, leave=leave, tqdm_class=self._tqdm_class, **kwargs
            )
        else:
            return nullcontext()

    def _spinner(
        self, desc=None, spinner=None, side="right", timer=True, **kwargs
    ):  # pragma: no cover
        # Progress doesn't mix well with debug logging.
        show_progress = self._show_progress and not self._debug
        if show_progress:
            if desc:
                # For consistent behaviour with tqdm.
                desc += ":"
            return yaspin(text=desc, spinner=spinner, side=side, timer=timer, **kwargs)
        else:
            return nullcontext()

    @check_types
    def results_cache_get(
        self, *, name: str, params: Dict[str, Any]
    ) -> Mapping[str, np.ndarray]:
        name = type(self).__name__.lower() + "_" + name
        if self._results_cache is None:
            raise CacheMiss
        cache_key, _ = hash_params(params)
        cache_path = self._results_cache / name / cache_key

        # Read zipped zarr format.
        results_path = cache_path / "results.zarr.zip"
        if results_path.exists():
            self._log.debug(f"cache hit {results_path}")
            return zarr.load(results_path)

        raise CacheMiss

    @check_types
    def results_cache_set(
        self, *, name: str, params: Dict[str, Any], results: Mapping[str, np.ndarray]
    ):
        name = type(self).__name__.lower() + "_" + name
        if self._results_cache is None:
            return

        cache_key, params_json = hash_params(params)

        # Determine storage path.
        cache_path = self._results_cache / name / cache_key
        cache_path.mkdir(exist_ok=True, parents=True)

        # Write the parameters as a JSON file.
        params_path = cache_path / "params.json"

        # Write the data to be cached as a zipped zarr file.
        results_path = cache_path / "results.zarr.zip"

        with self._spinner("Save results to cache"):
            with params_path.open(mode="w") as f:
                f.write(params_json)
            zarr.save(results_path, **results)
