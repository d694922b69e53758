import pathlib
from datetime import timezone

# Project layout
## Everything stratus generates for a project lives below this directory
PROJECT_CONFIG_DIRECTORY = ".stratus"
PROJECT_CONFIG_FILENAME = "config.yml"
DEFAULT_OUTPUT_DIRECTORY = pathlib.Path(PROJECT_CONFIG_DIRECTORY) / "build"
SERVICE_APP_MODULE = "app"
SERVICE_APP_ATTRIBUTE = "service"

# Compiled artifact
## The custom runtime only starts an executable named `bootstrap`
BINARY_NAME = "bootstrap"
FUNCTION_RUNTIME = "provided.al2023"
DEFAULT_FUNCTION_MEMORY_SIZE = 128
DEFAULT_FUNCTION_TIMEOUT = 10

# Zip entry permissions for executables (rwxrwxrwx, created on unix)
EXECUTABLE_EXTERNAL_ATTR = 0o777 << 16
UNIX_CREATE_SYSTEM = 3

# Stack parameters
STACK_PARAM_S3_CODE_BUCKET_NAME = "S3CodeBucket"
STACK_PARAM_S3_CODE_KEY_NAME = "S3CodeKey"
STACK_PARAM_S3_CODE_VERSION = "S3CodeVersion"
STACK_PARAM_S3_SITE_ARCHIVE_KEY = "S3SiteArchiveKey"
STACK_PARAM_S3_SITE_ARCHIVE_VERSION = "S3SiteArchiveVersion"
STACK_CONDITION_HAS_S3_CODE_VERSION = "HasS3CodeVersion"

# Stack outputs
STACK_OUTPUT_BUILD_TIME = "TemplateCreationTime"
STACK_OUTPUT_BUILD_ID = "BuildID"

# Template metadata keys, used to pass state from the build to the provisioner
METADATA_PARAM_CODE_ARCHIVE_PATH = "CodeArchivePath"
METADATA_PARAM_S3_SITE_ARCHIVE_PATH = "S3SiteArchivePath"
METADATA_PARAM_SERVICE_NAME = "ServiceName"
METADATA_PARAM_S3_BUCKET = "S3Bucket"
METADATA_PARAM_STACK_TAGS = "StackTags"

# Stack tags
STRATUS_TAG_BUILD_ID_KEY = "io:stratus:buildId"
STRATUS_TAG_BUILD_TAGS_KEY = "io:stratus:buildTags"

# Environment contract with deployed functions
ENV_VAR_DISCOVERY_INFORMATION = "STRATUS_DISCOVERY_INFO"
ENV_VAR_LOG_LEVEL = "STRATUS_LOG_LEVEL"
ENV_VAR_BUILD_ID = "STRATUS_BUILD_ID"
DEFAULT_LOG_LEVEL = "info"
REQUIRED_FUNCTION_ENVIRONMENT_KEYS = (ENV_VAR_DISCOVERY_INFORMATION, ENV_VAR_LOG_LEVEL)

# Hook context keys
CONTEXT_KEY_BUILD_OUTPUT_DIR = "stratus.build.outputDirectory"
CONTEXT_KEY_BUILD_ID = "stratus.build.buildID"
CONTEXT_KEY_BUILD_BINARY_NAME = "stratus.build.binaryName"

# CloudFormation resource types
LAMBDA_FUNCTION_RESOURCE_TYPE = "AWS::Lambda::Function"
IAM_ROLE_RESOURCE_TYPE = "AWS::IAM::Role"
CUSTOM_RESOURCE_RESOURCE_TYPE = "AWS::CloudFormation::CustomResource"
EVENT_SOURCE_MAPPING_RESOURCE_TYPE = "AWS::Lambda::EventSourceMapping"
S3_BUCKET_RESOURCE_TYPE = "AWS::S3::Bucket"
TEMPLATE_FORMAT_VERSION = "2010-09-09"

# Remote calls
STACK_WAIT_DELAY = 10
STACK_WAIT_MAX_ATTEMPTS = 180

# Status report
STATUS_DIVIDER_LENGTH = 48

GLOBAL_TIME_ZONE = timezone.utc
TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
