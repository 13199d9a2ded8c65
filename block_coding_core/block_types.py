"""
Block type registry for the block palette and parameter editing.

Every block kind has a BlockConfig describing how it is presented and which
parameters it takes.  The registry is consulted when the editor fills in
defaults or validates user input; code generation reads raw parameter values
and never depends on it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional


CONTROL_FLOW_TYPES = frozenset({
    'if-else',
    'for-loop',
    'while-loop',
    'forEach',
    'function-def',
})


@dataclass(frozen=True)
class ParamOption:
    """A selectable value for a 'select' parameter."""
    label: str
    value: str


@dataclass(frozen=True)
class BlockParam:
    """Definition of a single editable block parameter."""
    name: str
    label: str
    type: str  # 'text' | 'number' | 'select' | 'boolean'
    default_value: Any
    options: Optional[List[ParamOption]] = None

    def option_values(self) -> List[str]:
        """Return the raw values allowed for a select parameter."""
        return [option.value for option in self.options or []]


@dataclass(frozen=True)
class BlockSummary:
    """Palette entry shown in the sidebar."""
    type: str
    label: str
    description: str
    bg_color: str
    border_color: str


@dataclass(frozen=True)
class BlockCategory:
    id: str
    name: str
    blocks: List[BlockSummary] = field(default_factory=list)


@dataclass(frozen=True)
class BlockConfig:
    """Full configuration of a block kind, including its parameters."""
    type: str
    label: str
    description: str
    header_color: str
    connection_point_color: str
    params: List[BlockParam] = field(default_factory=list)

    def get_param(self, name: str) -> Optional[BlockParam]:
        """Get a parameter definition by name."""
        for param in self.params:
            if param.name == name:
                return param
        return None


def _options(*values: str) -> List[ParamOption]:
    return [ParamOption(label=value, value=value) for value in values]


BLOCK_CATEGORIES: List[BlockCategory] = [
    BlockCategory('basic', 'Basic', [
        BlockSummary('console.log', 'console.log', 'Output to console', 'bg-blue-100', 'border-blue-300'),
        BlockSummary('variable', 'Variable', 'Create/assign variable', 'bg-green-100', 'border-green-300'),
        BlockSummary('if-else', 'If-Else', 'Conditional logic', 'bg-yellow-100', 'border-yellow-300'),
    ]),
    BlockCategory('loops', 'Loops', [
        BlockSummary('for-loop', 'For Loop', 'Iterate with counter', 'bg-purple-100', 'border-purple-300'),
        BlockSummary('while-loop', 'While Loop', 'Loop with condition', 'bg-purple-100', 'border-purple-300'),
        BlockSummary('forEach', 'forEach', 'Iterate through array', 'bg-purple-100', 'border-purple-300'),
    ]),
    BlockCategory('math', 'Math & Logic', [
        BlockSummary('math-operation', 'Math Operation', '+, -, *, / operations', 'bg-red-100', 'border-red-300'),
        BlockSummary('comparison', 'Comparison', '==, !=, >, < operators', 'bg-red-100', 'border-red-300'),
        BlockSummary('logical-operator', 'Logical Operator', 'AND, OR, NOT', 'bg-red-100', 'border-red-300'),
    ]),
    BlockCategory('functions', 'Functions', [
        BlockSummary('function-def', 'Define Function', 'Create a function', 'bg-indigo-100', 'border-indigo-300'),
        BlockSummary('return', 'Return', 'Return a value', 'bg-indigo-100', 'border-indigo-300'),
        BlockSummary('function-call', 'Call Function', 'Execute a function', 'bg-indigo-100', 'border-indigo-300'),
    ]),
]


def _result_var_param() -> BlockParam:
    return BlockParam('resultVar', 'Result Variable (optional)', 'text', 'result')


_BLOCK_CONFIGS: Dict[str, BlockConfig] = {
    'console.log': BlockConfig(
        'console.log', 'console.log', 'Output to console', 'bg-blue-500', 'bg-blue-500',
        [BlockParam('message', 'Message', 'text', 'Hello, world!')],
    ),
    'variable': BlockConfig(
        'variable', 'Variable', 'Create/assign variable', 'bg-green-500', 'bg-green-500',
        [
            BlockParam('name', 'Variable Name', 'text', 'myVar'),
            BlockParam('value', 'Value', 'text', '0'),
            BlockParam('type', 'Type', 'select', 'Number',
                       _options('Number', 'String', 'Boolean', 'Array', 'Object')),
        ],
    ),
    'for-loop': BlockConfig(
        'for-loop', 'For Loop', 'Iterate with counter', 'bg-purple-500', 'bg-purple-500',
        [
            BlockParam('initVar', 'Initialize Variable', 'text', 'i'),
            BlockParam('initVal', 'Initial Value', 'number', 0),
            BlockParam('condOp', 'Condition Operator', 'select', '<',
                       _options('<', '<=', '>', '>=', '==', '!=')),
            BlockParam('condVal', 'Condition Value', 'number', 10),
            BlockParam('iteration', 'Iteration', 'text', 'i++'),
        ],
    ),
    'while-loop': BlockConfig(
        'while-loop', 'While Loop', 'Loop with condition', 'bg-purple-500', 'bg-purple-500',
        [BlockParam('condition', 'Condition', 'text', 'i < 10')],
    ),
    'forEach': BlockConfig(
        'forEach', 'forEach', 'Iterate through array', 'bg-purple-500', 'bg-purple-500',
        [
            BlockParam('array', 'Array', 'text', 'myArray'),
            BlockParam('itemName', 'Item Name', 'text', 'item'),
        ],
    ),
    'if-else': BlockConfig(
        'if-else', 'If-Else', 'Conditional logic', 'bg-yellow-500', 'bg-yellow-500',
        [BlockParam('condition', 'Condition', 'text', 'x > 0')],
    ),
    'math-operation': BlockConfig(
        'math-operation', 'Math Operation', 'Mathematical operation', 'bg-red-500', 'bg-red-500',
        [
            BlockParam('leftOperand', 'Left Operand', 'text', '0'),
            BlockParam('operator', 'Operator', 'select', '+', _options('+', '-', '*', '/', '%', '**')),
            BlockParam('rightOperand', 'Right Operand', 'text', '0'),
            _result_var_param(),
        ],
    ),
    'comparison': BlockConfig(
        'comparison', 'Comparison', 'Compare values', 'bg-red-500', 'bg-red-500',
        [
            BlockParam('leftOperand', 'Left Operand', 'text', '0'),
            BlockParam('operator', 'Operator', 'select', '==',
                       _options('==', '===', '!=', '!==', '>', '>=', '<', '<=')),
            BlockParam('rightOperand', 'Right Operand', 'text', '0'),
            _result_var_param(),
        ],
    ),
    'logical-operator': BlockConfig(
        'logical-operator', 'Logical Operator', 'Logical operation', 'bg-red-500', 'bg-red-500',
        [
            BlockParam('leftOperand', 'Left Operand', 'text', 'true'),
            BlockParam('operator', 'Operator', 'select', '&&', [
                ParamOption('AND', '&&'),
                ParamOption('OR', '||'),
                ParamOption('NOT', '!'),
            ]),
            BlockParam('rightOperand', 'Right Operand', 'text', 'true'),
            _result_var_param(),
        ],
    ),
    'function-def': BlockConfig(
        'function-def', 'Define Function', 'Create a function', 'bg-indigo-500', 'bg-indigo-500',
        [
            BlockParam('name', 'Function Name', 'text', 'myFunction'),
            BlockParam('params', 'Parameters (comma separated)', 'text', 'a, b'),
        ],
    ),
    'return': BlockConfig(
        'return', 'Return', 'Return a value', 'bg-indigo-500', 'bg-indigo-500',
        [BlockParam('value', 'Return Value', 'text', 'result')],
    ),
    'function-call': BlockConfig(
        'function-call', 'Call Function', 'Execute a function', 'bg-indigo-500', 'bg-indigo-500',
        [
            BlockParam('name', 'Function Name', 'text', 'myFunction'),
            BlockParam('args', 'Arguments (comma separated)', 'text', '1, 2'),
            _result_var_param(),
        ],
    ),
}

BLOCK_TYPES = tuple(_BLOCK_CONFIGS)


def is_known_block_type(block_type: str) -> bool:
    return block_type in _BLOCK_CONFIGS


def get_block_config(block_type: str) -> BlockConfig:
    """Return the config for a block type, or a parameterless fallback."""
    config = _BLOCK_CONFIGS.get(block_type)
    if config is not None:
        return config
    return BlockConfig(
        type=block_type,
        label=block_type,
        description='Unknown block type',
        header_color='bg-gray-500',
        connection_point_color='bg-gray-500',
        params=[],
    )


def get_param_definition(block_type: str, name: str) -> Optional[BlockParam]:
    return get_block_config(block_type).get_param(name)


def default_params(block_type: str) -> Dict[str, Any]:
    """Return a fresh dict of every parameter's default value."""
    return {param.name: param.default_value for param in get_block_config(block_type).params}


def palette_as_dict() -> List[Dict[str, Any]]:
    """Serialize the palette categories for the HTTP layer."""
    return [
        {
            'id': category.id,
            'name': category.name,
            'blocks': [
                {
                    'type': summary.type,
                    'label': summary.label,
                    'description': summary.description,
                    'bgColor': summary.bg_color,
                    'borderColor': summary.border_color,
                    'params': [
                        {
                            'name': param.name,
                            'label': param.label,
                            'type': param.type,
                            'defaultValue': param.default_value,
                            'options': [
                                {'label': option.label, 'value': option.value}
                                for option in param.options
                            ] if param.options else None,
                        }
                        for param in get_block_config(summary.type).params
                    ],
                }
                for summary in category.blocks
            ],
        }
        for category in BLOCK_CATEGORIES
    ]
