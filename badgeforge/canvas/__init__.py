from .errors import TemplateValidationError, DuplicateTemplateName, UnresolvedPlaceholder, ImageDecodeError
from .object import Field, FieldStyle, BoundText, Checkbox, ImageField, Background
from .template import Template
from .history import HistoryManager
from .transform import CoordinateTransform, PlacedBox
from .catalog import FieldCatalog, HttpFieldSource, SAMPLE_RECORD
from .preview import PreviewRenderer
from .export import PdfExporter, PlacedField
from .pdf_combiner import PDFCombiner, combine_documents
from .surface import DesignerSession
