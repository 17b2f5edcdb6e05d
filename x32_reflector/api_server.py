"""
FastAPI management server: HTML dashboard plus a small JSON API over the relay
"""
import ipaddress
import re
from html import escape
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote, urlencode

from fastapi import FastAPI, HTTPException, status
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel, Field, field_validator

from . import __version__
from .errors import AlreadyRegisteredError, ManagementError, UnknownDeviceError, UnknownTargetError

TEMPLATE_PATH = Path(__file__).parent / "web" / "index.html"
DEVICE_NAME_PATTERN = re.compile(r'[A-Za-z0-9_-]+')

NO_CACHE_HEADERS = {
    'Cache-Control': 'no-cache, no-store, must-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0',
}


# Pydantic models for request/response
class DeviceInfo(BaseModel):
    name: str
    address: str
    port: int


class TargetRequest(BaseModel):
    address: str
    port: int = Field(..., ge=1, le=65535)

    @field_validator('address')
    @classmethod
    def address_must_be_ipv4(cls, value):
        # Device sockets are IPv4, an IPv6 target could never be reached
        ipaddress.IPv4Address(value)
        return value


class TargetInfoResponse(BaseModel):
    address: str
    port: int
    seconds_remaining: float


class TargetListResponse(BaseModel):
    device: str
    targets: List[TargetInfoResponse]
    count: int


def load_template():
    return TEMPLATE_PATH.read_text(encoding='utf-8')


def validate_target_query(ip, port, device):
    """Returns an error message for the query, or None when it is usable"""
    if not ip:
        return "query parameter ip is required"
    if not port:
        return "query parameter port is required"
    if not device:
        return "query parameter device is required"
    try:
        ipaddress.IPv4Address(ip)
    except ValueError:
        return "IP must be a valid IP address"
    if not (port.isascii() and port.isdigit()) or not 1 <= int(port) <= 65535:
        return "Port must be a number"
    if not DEVICE_NAME_PATTERN.fullmatch(device):
        return "Device name required"
    return None


def _http_error(error: ManagementError):
    if isinstance(error, AlreadyRegisteredError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, (UnknownDeviceError, UnknownTargetError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


def render_index(relay, template, error=None):
    site_root = relay.config.site_root
    devices = relay.list_devices()

    options = ''.join(
        f'<option value="{escape(d["name"])}">{escape(d["name"])} ({escape(d["address"])}:{d["port"]})</option>'
        for d in devices
    )

    tables = []
    for device in devices:
        rows = []
        for target in relay.list_targets(device["name"]):
            query = urlencode({"ip": target.address, "port": target.port, "device": device["name"]})
            rows.append(f"""
        <tr>
            <td>{escape(target.address)}</td>
            <td>{target.port}</td>
            <td><a href="{site_root}remove?{escape(query)}">Delete</a></td>
            <td>{relay.seconds_remaining(target):.0f}</td>
            <td><a href="{site_root}renew?{escape(query)}">Renew</a></td>
        </tr>""")

        tables.append(f"""<h3>Instance {escape(device["name"])} ({escape(device["address"])}:{device["port"]})</h3>
            <table>
                <tr>
                    <th>IP Address</th>
                    <th>Port</th>
                    <th></th>
                    <th>Time Remaining (s)</th>
                    <th></th>
                </tr>
                {''.join(rows)}
            </table>""")

    return (template
            .replace('{{ERROR_INSERT}}', f'<p class="error">{escape(error)}</p>' if error else '')
            .replace('{{SITE_ROOT}}', escape(site_root))
            .replace('{{DEVICES}}', options)
            .replace('{{TABLE_INSERT}}', '<hr/>'.join(tables)))


def create_app(relay, template=None):
    """Build the management app around an already-created relay"""
    app = FastAPI(
        title="X32 Reflector API",
        description="Manage the subscribers that receive relayed X32 traffic",
        version=__version__
    )
    app.state.relay = relay
    app.state.template = template if template is not None else load_template()

    site_root = relay.config.site_root

    def succeed():
        return RedirectResponse(site_root, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    def fail(error):
        return RedirectResponse(f"{site_root}?error={quote(str(error))}",
                                status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    def redirect_operation(operation, ip, port, device):
        error = validate_target_query(ip, port, device)
        if error:
            return fail(error)
        try:
            operation(device, ip, int(port))
        except ManagementError as e:
            return fail(e)
        return succeed()

    # Web Interface
    @app.get("/", response_class=HTMLResponse)
    async def serve_dashboard(error: Optional[str] = None):
        """Render the dashboard with every device and its current targets"""
        content = render_index(relay, app.state.template, error)
        return HTMLResponse(content, headers=NO_CACHE_HEADERS)

    @app.get("/register")
    async def register_via_link(ip: Optional[str] = None, port: Optional[str] = None, device: Optional[str] = None):
        return redirect_operation(relay.register_target, ip, port, device)

    @app.get("/remove")
    async def remove_via_link(ip: Optional[str] = None, port: Optional[str] = None, device: Optional[str] = None):
        return redirect_operation(relay.remove_target, ip, port, device)

    @app.get("/renew")
    async def renew_via_link(ip: Optional[str] = None, port: Optional[str] = None, device: Optional[str] = None):
        return redirect_operation(relay.renew_target, ip, port, device)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "devices": len(relay.list_devices()),
            "keepalive": relay.scheduler.running,
        }

    # JSON API
    @app.get("/api/devices", response_model=List[DeviceInfo])
    async def list_devices():
        return relay.list_devices()

    @app.get("/api/devices/{name}/targets", response_model=TargetListResponse)
    async def list_targets(name: str):
        try:
            targets = relay.list_targets(name)
        except ManagementError as e:
            raise _http_error(e)

        return TargetListResponse(
            device=name,
            targets=[
                TargetInfoResponse(
                    address=t.address,
                    port=t.port,
                    seconds_remaining=relay.seconds_remaining(t)
                )
                for t in targets
            ],
            count=len(targets)
        )

    @app.post("/api/devices/{name}/targets", status_code=201)
    async def register_target(name: str, request: TargetRequest):
        try:
            relay.register_target(name, request.address, request.port)
        except ManagementError as e:
            raise _http_error(e)
        return {"device": name, "address": request.address, "port": request.port,
                "message": "Target registered"}

    @app.post("/api/devices/{name}/targets/{address}/{port}/renew")
    async def renew_target(name: str, address: str, port: int):
        try:
            relay.renew_target(name, address, port)
        except ManagementError as e:
            raise _http_error(e)
        return {"device": name, "address": address, "port": port, "message": "Target renewed"}

    @app.delete("/api/devices/{name}/targets/{address}/{port}")
    async def remove_target(name: str, address: str, port: int):
        try:
            relay.remove_target(name, address, port)
        except ManagementError as e:
            raise _http_error(e)
        return {"device": name, "address": address, "port": port, "message": "Target removed"}

    @app.get("/api/stats/traffic")
    async def get_traffic_stats():
        return relay.forwarder.get_current_traffic()

    return app
