"""FastAPI dependencies backed by objects built in the app lifespan."""

from fastapi import Request

from starter_core.resources import Resources
from task_dispatch.producer import TaskProducer
from task_dispatch.transport import QueueTransport


def get_resources(request: Request) -> Resources:
    return request.app.state.resources


def get_transport(request: Request) -> QueueTransport:
    return request.app.state.transport


def get_producer(request: Request) -> TaskProducer:
    return request.app.state.producer
