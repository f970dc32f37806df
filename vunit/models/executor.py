"""This module contains the executor model: the user's source file, its
compiled bytecode structure and the execution workflow."""
import asyncio
import logging

from typing import Optional, Sequence

from vunit.bytecode.composer import SLOT_WIDTH, compose
from vunit.bytecode.structure import BytecodeStructure
from vunit.compiler.api import CompilerApi
from vunit.compiler.files import ExecutorFile
from vunit.exceptions import InvalidArguments, InvalidFile, NoBytecodeStructure
from vunit.workflow.transaction import ExecutionWorkflow

log = logging.getLogger(__name__)

COMPILING = "compiling"
COMPILED = "done"


class ExecutorModel:
    """Holds the compile state and the execution workflow."""

    def __init__(
        self,
        workflow: ExecutionWorkflow = None,
        slot_width: int = SLOT_WIDTH,
        obfuscated: bool = False,
    ) -> None:
        self.workflow = workflow or ExecutionWorkflow()
        self.slot_width = slot_width
        self.obfuscated = obfuscated
        self.user_file = None  # type: Optional[ExecutorFile]
        self.current_file = None  # type: Optional[ExecutorFile]
        self.nargs = None  # type: Optional[int]
        self.bytecode_structure = None  # type: Optional[BytecodeStructure]
        self.compiler_status = None  # type: Optional[str]
        self._compilation = 0
        self._requested_nargs = None  # type: Optional[int]

    def begin_compile(self, nargs) -> int:
        """
        Validates the compile request and marks the model as compiling
        :param nargs: number of arguments of the entrypoint
        :return: the compilation number, passed on to compile()
        """
        if self.user_file is None:
            raise InvalidFile("Invalid file.")
        try:
            nargs = int(nargs)
        except (TypeError, ValueError):
            raise InvalidArguments("Invalid number of arguments {!r}".format(nargs))
        if nargs < 0:
            raise InvalidArguments("Invalid number of arguments {!r}".format(nargs))

        self._compilation += 1
        self._requested_nargs = nargs
        self.bytecode_structure = None
        self.compiler_status = COMPILING
        self.current_file = None
        self.nargs = None
        return self._compilation

    async def compile(
        self, api: CompilerApi, compilation: int
    ) -> Optional[BytecodeStructure]:
        """
        Runs a compilation started with begin_compile()
        :param api:
        :param compilation:
        :return: the structure, or None when the compilation was superseded
        """
        file = self.user_file
        nargs = self._requested_nargs
        try:
            structure = await asyncio.to_thread(
                api.generate_bytecode_structure, file, nargs
            )
        except Exception:
            if compilation == self._compilation:
                self.compiler_status = None
            raise

        if compilation != self._compilation:
            log.info("Discarding superseded compilation of %s", file.path)
            return None

        self.bytecode_structure = structure
        self.compiler_status = COMPILED
        self.current_file = file
        self.nargs = nargs
        return structure

    def cancel_compile(self) -> None:
        self.user_file = None
        if self.compiler_status == COMPILING:
            self._compilation += 1
            self.compiler_status = None

    def cancel_execution(self) -> bool:
        cancelled = self.workflow.cancel()
        self.compiler_status = None
        return cancelled

    def clear_file(self) -> None:
        self.current_file = None
        self.nargs = None
        self.bytecode_structure = None
        self.compiler_status = None

    def compose(self, args: Sequence[int]) -> str:
        """
        Patches the runtime arguments into the compiled structure
        :param args:
        :return: 0x-prefixed executable bytecode
        """
        if self.bytecode_structure is None:
            raise NoBytecodeStructure("Invalid bytecode structure.")
        return compose(
            self.bytecode_structure, args, self.slot_width, self.obfuscated
        )
