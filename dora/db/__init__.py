"""SQL access to the explorer database: connections, blocks, assignments and signatures."""