"""MapReduce applications, each providing mapf and reducef."""