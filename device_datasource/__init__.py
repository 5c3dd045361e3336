from .config import DataSourceConfig, load_config
from .datasource import DataSource, EntityResolver
from .decoder import decode
from .models import (DataQueryRequest, DataSourceRef, MetricFindValue,
                     MultiValue, Query, SingleValue, VariableQuery)
from .normalizer import normalize
from .request_builder import build_envelope, build_query
from .templating import TemplateExpander, TemplateVariables
from .transport import HttpTransport, Transport
