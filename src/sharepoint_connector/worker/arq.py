from sharepoint_connector.worker.worker import Worker

worker = Worker()


class WorkerSettings:
    functions = worker.functions
    queue_name = worker.queue_name
    redis_settings = worker.redis_settings
    on_startup = worker.on_startup
    on_shutdown = worker.on_shutdown
    retry_jobs = worker.retry_jobs
    max_tries = worker.max_tries
    job_timeout = worker.job_timeout
    max_jobs = worker.max_jobs
    keep_result = worker.keep_result
    health_check_interval = worker.health_check_interval
    on_job_start = worker.on_job_start
    after_job_end = worker.after_job_end
