"""Test fixtures for typespace tests.

This module provides sample OpenAPI documents used across the test suite, and
a helper that generates a package from a document and imports it.
"""

import importlib
import json
import sys
import uuid
from pathlib import Path


# Minimal OpenAPI 3.0 document
MINIMAL_OPENAPI_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Minimal API', 'version': '1.0.0'},
    'paths': {},
}


def _ref(name: str) -> dict:
    return {'$ref': f'#/components/schemas/{name}'}


def _page_parameters() -> list:
    return [
        {'name': 'limit', 'in': 'query', 'schema': {'type': 'integer', 'format': 'uint32'}},
        {'name': 'page_token', 'in': 'query', 'schema': {'type': 'string', 'nullable': True}},
    ]


def _json(schema: dict, description: str = 'successful operation') -> dict:
    return {'description': description, 'content': {'application/json': {'schema': schema}}}


# A region API in the style of a cloud control plane: tagged unions, network
# overrides, enums, a self-referential schema, allOf and paginated lists.
REGION_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Region API', 'version': '1.0.0'},
    'paths': {
        '/v1/disks': {
            'get': {
                'operationId': 'disk_list',
                'summary': 'List disks',
                'tags': ['disks'],
                'parameters': [
                    {
                        'name': 'project',
                        'in': 'query',
                        'required': True,
                        'schema': {'type': 'string'},
                    },
                    *_page_parameters(),
                ],
                'responses': {'200': _json(_ref('DiskResultsPage'))},
            },
            'post': {
                'operationId': 'disk_create',
                'summary': 'Create a disk',
                'tags': ['disks'],
                'requestBody': {
                    'required': True,
                    'content': {'application/json': {'schema': _ref('DiskCreate')}},
                },
                'responses': {'201': _json(_ref('Disk'))},
            },
        },
        '/v1/disks/{disk}': {
            'parameters': [
                {'name': 'disk', 'in': 'path', 'required': True, 'schema': {'type': 'string'}}
            ],
            'get': {
                'operationId': 'disk_view',
                'tags': ['disks'],
                'responses': {'200': _json(_ref('Disk'))},
            },
            'delete': {
                'operationId': 'disk_delete',
                'tags': ['disks'],
                'deprecated': True,
                'responses': {'204': {'description': 'deleted'}},
            },
        },
        '/v1/instances': {
            'post': {
                'operationId': 'instance_create',
                'tags': ['instances'],
                'requestBody': {
                    'content': {
                        'application/json': {
                            'schema': {
                                'type': 'object',
                                'properties': {
                                    'name': {'type': 'string'},
                                    'start': {'type': 'boolean'},
                                },
                            }
                        }
                    }
                },
                'responses': {
                    '201': _json(
                        {
                            'type': 'object',
                            'properties': {
                                'id': {'type': 'string', 'format': 'uuid'},
                                'name': {'type': 'string'},
                            },
                        }
                    )
                },
            }
        },
        '/v1/routes/{route}': {
            'get': {
                'operationId': 'router_route_view',
                'tags': ['vpcs'],
                'parameters': [
                    {'name': 'route', 'in': 'path', 'required': True, 'schema': {'type': 'string'}}
                ],
                'responses': {'200': _json(_ref('RouterRoute'))},
            }
        },
    },
    'components': {
        'schemas': {
            'IpNet': {'oneOf': [_ref('Ipv4Net'), _ref('Ipv6Net')]},
            'Ipv4Net': {'type': 'string', 'pattern': r'^(\d+\.){3}\d+/\d+$'},
            'Ipv6Net': {'type': 'string'},
            'RouteTarget': {
                'description': 'A route target.',
                'oneOf': [
                    {
                        'description': 'Forward traffic to an instance.',
                        'type': 'object',
                        'properties': {
                            'type': {'type': 'string', 'enum': ['instance']},
                            'value': {'type': 'string'},
                        },
                        'required': ['type', 'value'],
                    },
                    {
                        'type': 'object',
                        'properties': {
                            'type': {'type': 'string', 'enum': ['ip']},
                            'value': {'type': 'string', 'format': 'ip'},
                        },
                        'required': ['type', 'value'],
                    },
                    {
                        'description': 'Drop matching traffic.',
                        'type': 'object',
                        'properties': {'type': {'type': 'string', 'enum': ['drop']}},
                        'required': ['type'],
                    },
                ],
            },
            'RouteDestination': {
                'oneOf': [
                    {
                        'type': 'object',
                        'properties': {
                            'type': {'type': 'string', 'enum': ['ipnet']},
                            'value': _ref('IpNet'),
                        },
                        'required': ['type', 'value'],
                    },
                    {
                        'type': 'object',
                        'properties': {
                            'type': {'type': 'string', 'enum': ['vpc']},
                            'value': {'type': 'string'},
                        },
                        'required': ['type', 'value'],
                    },
                ],
            },
            'DiskState': {
                'description': 'State of a disk.',
                'type': 'string',
                'enum': ['creating', 'detached', 'attached'],
            },
            'Disk': {
                'type': 'object',
                'required': ['id', 'name'],
                'properties': {
                    'name': {'type': 'string'},
                    'id': {'type': 'string', 'format': 'uuid'},
                    'size': {'type': 'integer', 'format': 'int64'},
                    'block_size': {'type': 'integer', 'format': 'uint32'},
                    'state': _ref('DiskState'),
                    'devicePath': {'type': 'string', 'description': 'Device path in the guest.'},
                    'time_created': {'type': 'string', 'format': 'date-time'},
                    'read_only': {'type': 'boolean'},
                    'tags': {'type': 'array', 'items': {'type': 'string'}},
                    'labels': {
                        'type': 'object',
                        'additionalProperties': {'type': 'string'},
                    },
                },
            },
            'DiskCreate': {
                'type': 'object',
                'properties': {
                    'name': {'type': 'string'},
                    'size': {'type': 'integer', 'format': 'int64'},
                },
            },
            'DiskResultsPage': {
                'type': 'object',
                'required': ['items'],
                'properties': {
                    'items': {'type': 'array', 'items': _ref('Disk')},
                    'next_page': {'type': 'string', 'nullable': True},
                },
            },
            'Node': {
                'type': 'object',
                'properties': {
                    'id': {'type': 'string'},
                    'children': {'type': 'array', 'items': _ref('Node')},
                    'parent': _ref('Node'),
                },
            },
            'IdentityMetadata': {
                'type': 'object',
                'properties': {
                    'id': {'type': 'string'},
                    'name': {'type': 'string'},
                    'description': {'type': 'string'},
                },
            },
            'Project': {
                'allOf': [
                    _ref('IdentityMetadata'),
                    {'type': 'object', 'properties': {'vpc_count': {'type': 'integer'}}},
                ],
            },
            'RouterRoute': {
                'type': 'object',
                'properties': {
                    'id': {'type': 'string'},
                    'name': {'type': 'string'},
                    'kind': {
                        'type': 'string',
                        'enum': ['default', 'custom'],
                        'default': 'custom',
                    },
                    'target': _ref('RouteTarget'),
                    'destination': _ref('RouteDestination'),
                },
            },
        }
    },
}

# Schemas whose names collide once sanitized.
COLLIDING_NAMES_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Colliding API', 'version': '1.0.0'},
    'paths': {},
    'components': {
        'schemas': {
            'DiskState': {'type': 'string', 'enum': ['attached']},
            'disk_state': {'type': 'string', 'enum': ['detached']},
        }
    },
}

# Same collision, but both schemas describe the same enum.
IDENTICAL_NAMES_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Identical API', 'version': '1.0.0'},
    'paths': {},
    'components': {
        'schemas': {
            'DiskState': {'type': 'string', 'enum': ['attached']},
            'disk-state': {'type': 'string', 'enum': ['attached']},
        }
    },
}

# An operation whose response cannot be classified.
UNKNOWN_RESPONSE_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Unknown API', 'version': '1.0.0'},
    'paths': {
        '/things': {
            'get': {
                'operationId': 'thing_list',
                'responses': {'200': _json({'not': {'type': 'string'}})},
            }
        }
    },
}


def _variant(tag: str, value: dict | None = None) -> dict:
    properties = {'type': {'type': 'string', 'enum': [tag]}}
    if value is not None:
        properties['value'] = value
    return {'type': 'object', 'properties': properties}


# Union content of every shape, and a union reached through its own member
# before the union itself is listed.
SELECTOR_SPEC = {
    'openapi': '3.0.3',
    'info': {'title': 'Selector API', 'version': '1.0.0'},
    'paths': {},
    'components': {
        'schemas': {
            'Inner': {'type': 'object', 'properties': {'x': {'type': 'string'}}},
            'Selector': {
                'oneOf': [
                    _variant('names', {'type': 'array', 'items': {'type': 'string'}}),
                    _variant(
                        'labels', {'type': 'object', 'additionalProperties': {'type': 'string'}}
                    ),
                    _variant('inner', {'allOf': [_ref('Inner')], 'nullable': True}),
                    _variant('count', {'type': 'integer'}),
                    _variant('flag', {'type': 'boolean'}),
                    _variant('all'),
                ]
            },
            'Branch': {
                'type': 'object',
                'properties': {
                    'type': {'type': 'string', 'enum': ['b']},
                    'child': _ref('Tree'),
                },
            },
            'Tree': {
                'oneOf': [
                    _ref('Branch'),
                    {
                        'type': 'object',
                        'properties': {
                            'type': {'type': 'string', 'enum': ['c']},
                            'n': {'type': 'integer'},
                        },
                    },
                ]
            },
        }
    },
}


def generate_package(spec: dict, root: Path, validate_document: bool = False):
    """Generate ``spec`` under ``root`` and import the resulting package.

    Every call uses a fresh package name so generated modules never clash in
    ``sys.modules``.
    """
    from typespace.codegen import Codegen
    from typespace.config import DocumentConfig

    source = root / 'openapi.json'
    source.write_text(json.dumps(spec))
    name = f'generated_{uuid.uuid4().hex[:12]}'
    Codegen(
        DocumentConfig(
            source=str(source),
            output=str(root / name),
            validate_document=validate_document,
        )
    ).generate()

    sys.path.insert(0, str(root))
    try:
        package = importlib.import_module(name)
        importlib.import_module(f'{name}.types')
    finally:
        sys.path.remove(str(root))
    return package
