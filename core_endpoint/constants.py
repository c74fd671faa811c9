import os

# JSON:API version advertised in every response envelope
JSONAPI_VERSION = "1.0"

# Standard HTTP headers
HDR_X_SERIES_UUID = "x-series-uuid"
HDR_X_CORRELATION_ID = "X-Correlation-Id"
HDR_X_SESSION_TOKEN = "x-session-token"
HDR_X_API_KEY = "x-api-key"
HDR_X_FORWARDED_FOR = "X-Forwarded-For"
HDR_AUTHORIZATION = "Authorization"
HDR_CONTENT_TYPE = "Content-Type"

# Inbound headers that may carry the series (correlation) id, in order of preference
SERIES_ID_HEADERS = (HDR_X_SERIES_UUID, HDR_X_CORRELATION_ID)

# API Gateway event fields
QUERY_STRING_PARAMETERS = "queryStringParameters"
PATH_PARAMETERS = "pathParameters"
BODY_PARAMETER = "body"
HEADER_SINGULAR = "header"
HEADERS_PLURAL = "headers"
NAMED_PARAMETERS = "parameters"
REQUEST_CONTEXT = "requestContext"

# Session token lifetime (seconds)
DEFAULT_TOKEN_TTL = 3600
MAX_TOKEN_TTL = 43200
TOKEN_SCHEMA_VERSION = 1
DEFAULT_NAMESPACE = "default"
DEFAULT_SOURCE_IP = "0.0.0.0"

SUPPORTED_ALGORITHMS = ["HS256", "HS384", "HS512"]
DEFAULT_TOKEN_SECRET = "your-secret-key-here"

# Persona identities. These never change; downstream services match on them.
PUBLIC_USER_ID = "ba0b55a6-a4b1-e13c-2138-96a92faf32d2"
PUBLIC_PERSON_ID = "e34b3aff-29a5-6dfc-5f08-317b9f8cfe2b"
SYSTEM_USER_ID = "258c39ee-d4c1-3b92-71a0-fc661f0cd951"
SYSTEM_PERSON_ID = "870a6a03-3488-7138-bb76-15db850dee6a"

FLAG_PUBLIC = "public"
FLAG_UNAUTHORIZED = "unauthorized"
FLAG_SYSTEM = "system"
FLAG_DEVELOPMENT = "development"

# Paging defaults
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000

ERROR_DOCS_URL = os.getenv("SCK_ERROR_DOCS_URL", "https://developer.simple-cloud-kit.com")

DEFAULT_STAGE = "local"
