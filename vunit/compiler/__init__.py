from vunit.compiler.api import CompilerApi
from vunit.compiler.files import ExecutorFile, SupportedLanguage, load_executor_file
