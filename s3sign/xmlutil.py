"""Namespace-agnostic helpers over xml.etree for S3 response bodies."""

import xml.etree.ElementTree as ET
from xml.etree.ElementTree import Element, SubElement, tostring

NS = "http://s3.amazonaws.com/doc/2006-03-01/"
XML_DECLARATION = b'<?xml version="1.0" encoding="UTF-8"?>\n'


def parse(body) -> Element:
    if isinstance(body, str):
        body = body.encode('utf-8')
    return ET.fromstring(body)


def local_name(tag: str) -> str:
    return tag.rsplit('}', 1)[-1]


def children(element: Element, name: str) -> list:
    return [c for c in element if local_name(c.tag) == name]


def child(element: Element, name: str):
    found = children(element, name)
    return found[0] if found else None


def find(element: Element, path: str):
    """Follow a slash-separated path of local names, e.g. ``Owner/ID``."""
    node = element
    for name in path.split('/'):
        if node is None:
            return None
        node = child(node, name)
    return node


def find_text(element: Element, path: str, default=None):
    node = find(element, path)
    if node is None or node.text is None:
        return default
    return node.text


def build(root_name: str, fields: dict) -> bytes:
    """Serialize ``{tag: text}`` into a one-level S3 document."""
    root = Element(root_name, xmlns=NS)
    for name, text in fields.items():
        SubElement(root, name).text = text
    return XML_DECLARATION + tostring(root)
