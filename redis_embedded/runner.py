import threading
import time
from logging import getLogger

from fastapi import APIRouter, FastAPI
from uvicorn import Config, Server

from .cluster import RedisCluster, RedisClusterBuilder
from .config import Settings
from .utils import GracefulKiller

logger = getLogger(__name__)


class ClusterRunner:
    """Keep a topology running until SIGINT/SIGTERM or a ``GET /stop``.

    When ``http_host`` and ``http_port`` are configured, a small control API
    runs next to the cluster:

        GET /ports   all ports, split into sentinels and servers
        GET /status  whether every instance is active
        GET /stop    ask the runner to stop the cluster and exit
    """

    CHECK_INTERVAL = 0.3

    def __init__(self, config: Settings, cluster: RedisCluster = None):
        self.config = config
        self.cluster = cluster or RedisClusterBuilder.from_settings(config).build()
        self.http_server = None
        self.need_stop = False

    def ports(self):
        return {
            'ports': self.cluster.ports(),
            'sentinels': self.cluster.sentinel_ports(),
            'servers': self.cluster.server_ports(),
        }

    def status(self):
        return {'active': self.cluster.is_active()}

    def request_stop(self):
        self.need_stop = True
        return {'stopping': True}

    def create_app(self) -> FastAPI:
        app = FastAPI()
        router = APIRouter()
        router.add_api_route('/ports', self.ports, methods=['GET'])
        router.add_api_route('/status', self.status, methods=['GET'])
        router.add_api_route('/stop', self.request_stop, methods=['GET'])
        app.include_router(router)
        return app

    def run_server(self):
        if not self.config.http_host or not self.config.http_port:
            logger.info('http server disabled')
            return
        logger.info(f'starting http server on {self.config.http_host}:{self.config.http_port}')
        config = Config(app=self.create_app(), host=self.config.http_host, port=self.config.http_port)
        self.http_server = Server(config)
        self.http_server.run()

    def run(self):
        killer = GracefulKiller()

        try:
            self.cluster.start()
        except BaseException:
            logger.error('cluster failed to start, stopping what did start')
            self.cluster.stop_after_failed_start()
            raise

        server_thread = threading.Thread(target=self.run_server, daemon=True)
        server_thread.start()

        logger.info(f'cluster running, sentinels: {self.cluster.sentinel_ports()}, servers: {self.cluster.server_ports()}')

        while not killer.kill_now and not self.need_stop:
            time.sleep(self.CHECK_INTERVAL)

        logger.info('stopping cluster')
        try:
            self.cluster.stop()
        finally:
            if self.http_server:
                self.http_server.should_exit = True
            server_thread.join()

        logger.info('stopped')
