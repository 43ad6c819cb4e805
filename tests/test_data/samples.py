"""
Source code samples for testing statement extraction and matching.
"""

RUST_SOURCE = r'''
#[macro_use]
extern crate log;

fn main() {
    env_logger::init();
    debug!("you're only as funky as your last cut");
    for i in 0..3 {
        foo(i);
    }
}

fn foo(i: u32) {
    nope(i);
}

fn nope(i: u32, j: i32) {
    debug!("this won't match i={}; j={}", i, j);
}

fn namedarg(name: &str) {
    debug!("Hello, {name}!");
}
'''

RUST_SCENARIOS = r'''
fn main() {
    info!("Hello from main");
    for i in 0..3 {
        foo(i);
    }
}

fn foo(i: u32) {
    debug!("Hello from foo i={}", i);
}

fn greet(salutation: &str, name: &str) {
    info!("{salutation}, {name}!");
}
'''

RUST_PLACEHOLDERS_ONLY = r'''
fn noisy(a: u32, b: u32, c: u32) {
    info!("{} {}", a, b);
    info!("c={}", c);
}
'''

RUST_RANKING = r'''
fn report(a: u32, b: u32) {
    info!("Hello {}", a);
    info!("Hello world {}", b);
}
'''

JAVA_SOURCE = '''
package com.example;

public class JvmPauseMonitor {
    private static final Logger LOG = LoggerFactory.getLogger(JvmPauseMonitor.class);

    private void run() {
        LOG.info("{}: Started", this);
        try {
            for (; Thread.currentThread().equals(threadRef.get()); ) {
                detectPause();
            }
        } finally {
            LOG.info("{}: Stopped", this);
        }
    }

    public void report(String action, String userId, int count) {
        log.info(String.format("Action %s completed for user %s", action, userId));
        logger.warn("Took %d ms (%.1f%%)", count, 12.5);
        log.debug("Processing {0} items for user {1}", count, userId);
        helper.info("not a logger call {}", count);
    }
}
'''

JAVA_CLASS = '''
package pkg;

public class Class {
    private static final Logger log = LoggerFactory.getLogger(Class.class);

    public void method(String name) {
        log.error("Something failed for {}", name);
    }
}
'''

PYTHON_SOURCE = '''
import logging

logger = logging.getLogger(__name__)


def ingest(path, rows):
    logger.info("Ingested %d rows from %s", rows, path)
    logger.warning(f"Skipping malformed record in {path}")
    logger.error("Upload of %(name)s failed", {"name": path}, exc_info=True)
    print("not a logging call %s" % path)


class Loader:
    def load(self):
        self.logger.debug("Loader {} ready".format(self))


logging.info("module imported")
'''

PYTHON_TRACE_BODY = '''Failed to load config
Traceback (most recent call last):
  File "/srv/app/ingest.py", line 7, in ingest
    rows = parse(path)
ValueError: bad value'''

JAVA_TRACE_BODY = '''Request failed
java.lang.RuntimeException: boom
\tat pkg.Class.method(Class.java:50)
\tat com.example.Missing.run(Missing.java:10)
\t... 3 more'''
