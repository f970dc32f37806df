from vunit.bytecode.structure import BytecodeStructure
from vunit.bytecode.composer import SLOT_WIDTH, compose, extract_args, obfuscate
