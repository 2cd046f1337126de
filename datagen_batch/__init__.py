"""
datagen_batch -- Resumable per-customer data generation engine.

Walks an ordered customer directory, asks the external generation service
for one dataset per customer, and upserts each dataset section by section.
Progress survives restarts through a single checkpoint record.

Architecture:
    datagen_batch/ is a top-level package.  datagen_kernel/ (logging,
    errors, clock, db) and datagen_config/ never import from it.

Invariants:
    - One active job at a time, one customer in flight at a time
    - SAVEPOINT isolation per persisted section
    - Section flags are a pure function of the customer id
    - Clock injection (no datetime.now() calls outside SystemClock)
    - Checkpoint saved after every transition and every customer
"""
