"""Line charts from dstat CSV logs."""

from .csv_processor import (
    ColumnNotFoundError,
    ColumnRef,
    CSVProcessingError,
    CsvSchema,
    DstatCsvReader,
    FileAccessError,
    FileMetadata,
    MalformedCsvError,
    RawSeries,
    UnknownCategoryError,
    UnknownFieldError,
    resolve_column,
)
from .main import (
    AxisState,
    DatasetContainer,
    NoDataError,
    PlotMetadata,
    TransformParams,
    assemble_dataset_container,
    build_plot_title,
    generate_filename,
    read_datasets,
    render_dataset_container,
    transform_series,
)
from .smoothing import InvalidTransformConfigError, SmoothingAlgorithm, apply_smoothing

__version__ = "0.1.0"
