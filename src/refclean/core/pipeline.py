# src/refclean/core/pipeline.py
"""Core pipeline class for batch EEG preprocessing.

The Pipeline class handles:

1. Configuration Management:
   - Loading and validating processing settings
   - Managing the output directory

2. Data Processing:
   - Single recording and single file processing
   - Batch processing of a directory with per-file error isolation

3. Results Management:
   - Saving cleaned recordings as EEGLAB or FIF files
   - Collecting one record per file in a tab separated summary

Examples
--------
>>> from refclean import Pipeline
>>> pipeline = Pipeline(output_dir="/path/to/output", config_file="config.yaml")
>>> recorder = pipeline.process_directory("/path/to/data", pattern="*.set")
>>> recorder.to_dataframe()
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import mne
import pandas as pd

from refclean.step_functions.continuous import step_preprocess_raw
from refclean.types import FileRecord
from refclean.utils.config import default_config, load_config, validate_config
from refclean.utils.logging import configure_logger, message

SUMMARY_FILENAME = "refclean_summary.tsv"


class BatchRecorder:
    """Collects one :class:`FileRecord` per processed file.

    Parameters
    ----------
    summary_file : str or Path, optional
        When given, the summary is rewritten after every added record.
    """

    def __init__(self, summary_file: Optional[Union[str, Path]] = None):
        self.summary_file = Path(summary_file) if summary_file else None
        self._records: List[FileRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> List[FileRecord]:
        return list(self._records)

    def add(self, record: FileRecord) -> FileRecord:
        self._records.append(record)
        if self.summary_file is not None:
            self.save(self.summary_file)
        return record

    def to_dataframe(self) -> pd.DataFrame:
        """Summary table, one row per file."""
        rows = []
        for record in self._records:
            row = record.model_dump()
            row["bad_channels"] = ",".join(record.bad_channels)
            rows.append(row)
        return pd.DataFrame(rows, columns=list(FileRecord.model_fields))

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_dataframe().to_csv(path, sep="\t", index=False)
        return path


class Pipeline:
    """Pipeline class for batch EEG preprocessing.

    Parameters
    ----------
    output_dir : str or Path
        Directory where cleaned recordings, the summary and logs are written.
    config_file : str or Path, optional
        YAML configuration file. Ignored when ``config`` is given.
    config : dict, optional
        Configuration dictionary in the ``{enabled, value}`` step layout.
        The defaults are used when neither ``config`` nor ``config_file``
        is given.
    verbose : bool, str or None, optional
        Controls logging verbosity, by default None.

    Examples
    --------
    >>> pipeline = Pipeline(output_dir="results/")
    >>> record = pipeline.process_file("data/sub-01.set")
    >>> record.status
    'completed'
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        config_file: Optional[Union[str, Path]] = None,
        config: Optional[Dict[str, Any]] = None,
        verbose: Optional[Union[bool, str]] = None,
    ):
        self.output_dir = Path(output_dir).absolute()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.verbose = verbose
        configure_logger(verbose, output_dir=self.output_dir)

        if config is not None:
            self.refclean_dict = validate_config(config)
        elif config_file is not None:
            self.refclean_dict = load_config(config_file)
        else:
            self.refclean_dict = validate_config(default_config())

        self.output_format = self.refclean_dict["output"]["format"]
        self.skip_existing = self.refclean_dict["output"]["skip_existing"]

        message(
            "header",
            f"Pipeline initialized\nOutput directory: {self.output_dir}",
        )

    def __repr__(self) -> str:
        return f"Pipeline(output_dir='{self.output_dir}', format='{self.output_format}')"

    def output_path(self, name: str) -> Path:
        """Where the cleaned recording called ``name`` is written."""
        if self.output_format == "fif":
            return self.output_dir / f"{name}_refclean_raw.fif"
        return self.output_dir / f"{name}_refclean.set"

    def _save_raw(self, raw: mne.io.BaseRaw, path: Path) -> Path:
        try:
            if self.output_format == "fif":
                raw.save(path, overwrite=True, verbose=False)
            else:
                raw.export(path, fmt="eeglab", overwrite=True, verbose=False)
        except Exception as e:
            raise RuntimeError(f"Failed to save {path.name}: {str(e)}") from e
        message("success", f"✓ Saved {path.name}")
        return path

    def process_raw(self, raw: mne.io.BaseRaw, name: str) -> FileRecord:
        """Preprocess one recording and write the cleaned result.

        Parameters
        ----------
        raw : mne.io.BaseRaw
            Continuous EEG data.
        name : str
            Set name used for the output file and the record.

        Returns
        -------
        record : FileRecord
            ``status`` is ``"completed"`` or ``"rejected"``.
        """
        if not isinstance(raw, mne.io.BaseRaw):
            raise TypeError(f"Data must be an MNE Raw object, got {type(raw).__name__}")

        message("header", f"Processing {name}")
        record = FileRecord(setname=name, source=name)

        outcome = step_preprocess_raw(raw, self.refclean_dict)
        record.bad_channels = list(outcome.bad_channels)
        if outcome.iteration_result is not None:
            record.iterations = outcome.iteration_result.iterations_run
        if outcome.detection_result is not None:
            record.bad_segments = len(outcome.detection_result.bad_segments)
            record.bad_seconds = outcome.detection_result.total_bad_seconds

        if outcome.rejected:
            record.status = "rejected"
            return record

        record.output = str(self._save_raw(outcome.raw, self.output_path(name)))
        record.status = "completed"
        return record

    def process_file(self, file_path: Union[str, Path]) -> FileRecord:
        """Read one EEG file, preprocess it and write the cleaned result."""
        file_path = Path(file_path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        try:
            raw = mne.io.read_raw(file_path, preload=True, verbose=False)
        except Exception as e:
            raise RuntimeError(f"Failed to read {file_path}: {str(e)}") from e

        record = self.process_raw(raw, file_path.stem)
        record.source = str(file_path)
        return record

    def process_directory(
        self,
        directory: Union[str, Path],
        pattern: str = "*.set",
        recursive: bool = False,
        recorder: Optional[BatchRecorder] = None,
    ) -> BatchRecorder:
        """Processes all files matching a pattern within a directory sequentially.

        Parameters
        ----------
        directory : str or Path
            Path to the directory containing the EEG files.
        pattern : str, optional
            Glob pattern to match files within the directory, default is `*.set`.
        recursive : bool, optional
            If True, searches subdirectories recursively, by default False.
        recorder : BatchRecorder, optional
            Collector receiving one record per file. A new one writing
            ``refclean_summary.tsv`` in the output directory is created when
            omitted.

        Returns
        -------
        recorder : BatchRecorder
            The collector holding the records of this run.

        Notes
        -----
        If processing fails for one file, the pipeline will continue
        with the remaining files and record the error.
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise NotADirectoryError(f"Directory not found: {directory}")

        if recorder is None:
            recorder = BatchRecorder(self.output_dir / SUMMARY_FILENAME)

        search_pattern = f"**/{pattern}" if recursive else pattern
        files = sorted(directory.glob(search_pattern))
        if not files:
            message("warning", f"No files matching '{pattern}' found in {directory}")
            return recorder

        message("info", f"Found {len(files)} files to process")

        for file_path in files:
            if self.skip_existing and self.output_path(file_path.stem).exists():
                message("info", f"Skipping {file_path.name}, output already exists")
                recorder.add(
                    FileRecord(
                        setname=file_path.stem,
                        source=str(file_path),
                        status="skipped",
                        output=str(self.output_path(file_path.stem)),
                    )
                )
                continue
            try:
                record = self.process_file(file_path)
            except Exception as e:  # pylint: disable=broad-except
                message("error", f"Failed to process {file_path}: {str(e)}")
                record = FileRecord(
                    setname=file_path.stem,
                    source=str(file_path),
                    status="failed",
                    error=str(e),
                )
            recorder.add(record)

        n_done = sum(r.status == "completed" for r in recorder.records)
        message("success", f"✓ Processed {n_done} of {len(files)} file(s)")
        return recorder
